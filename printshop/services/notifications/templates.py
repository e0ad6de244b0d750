"""
Notification message templates rendered with Jinja2.

Templates live in code rather than on disk; a deployment that wants
different wording passes its own mapping to NotificationTemplates.
"""

from typing import Any, Dict, Mapping, Optional

from jinja2 import DictLoader, Environment, StrictUndefined, TemplateError, TemplateNotFound

from printshop.core.logging import get_logger
from printshop.services.pricing.engine import format_money

logger = get_logger(__name__)


DEFAULT_TEMPLATES: Dict[str, str] = {
    "status_change_subject.txt": (
        "Order {{ order_label }} is now {{ new_status }}"
    ),
    "status_change.txt": (
        "Order {{ order_label }} for {{ client_name }} moved"
        "{% if previous_status %} from {{ previous_status }}{% endif %}"
        " to {{ new_status }}.\n"
        "{% if action_details %}{{ action_details }}\n{% endif %}"
        "Total: {{ total | money(currency_code) }}\n"
        "Waiting on: {{ recipient_roles | join(', ') }}"
    ),
}


class TemplateRenderError(Exception):
    """Raised when a notification template cannot be rendered."""

    def __init__(self, message: str, template_name: Optional[str] = None):
        super().__init__(message)
        self.template_name = template_name


class NotificationTemplates:
    """
    Renders notification subjects and bodies.

    Args:
        templates: Template sources keyed by name, defaults to
            DEFAULT_TEMPLATES
    """

    def __init__(self, templates: Optional[Mapping[str, str]] = None):
        self.env = Environment(
            loader=DictLoader(dict(templates or DEFAULT_TEMPLATES)),
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["money"] = format_money

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        """
        Render one template.

        Raises:
            TemplateRenderError: If the template is missing or a variable
                is undefined
        """
        try:
            template = self.env.get_template(template_name)
            return template.render(**context).strip()
        except TemplateNotFound as e:
            raise TemplateRenderError(
                f"Notification template not found: {template_name}",
                template_name=template_name,
            ) from e
        except TemplateError as e:
            logger.error(
                "Notification template rendering failed",
                template_name=template_name,
                error=str(e),
            )
            raise TemplateRenderError(
                f"Failed to render notification template: {e}",
                template_name=template_name,
            ) from e

    def render_status_change(self, context: Dict[str, Any]) -> Dict[str, str]:
        return {
            "subject": self.render("status_change_subject.txt", context),
            "body": self.render("status_change.txt", context),
        }
