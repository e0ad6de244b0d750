"""
File naming conventions for order attachments.

Uploaded files are renamed so that a file found anywhere (a download folder,
a print queue) can be traced back to its order and purpose:

    ORD-{first 8 chars of order id}_{Client_Name}_{PROOF|PRINT|REF}_{epoch ms}.{ext}

and stored in the blob store under ``{company_id}/{order_id}/{category}/``.
"""

import re
import time
import uuid
from typing import Optional

from printshop.core.exceptions import ValidationFailedError
from printshop.services.orders.enums import AttachmentType

MAX_CLIENT_NAME_LENGTH = 30
FALLBACK_CLIENT_NAME = "Order"
FALLBACK_EXTENSION = "file"

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_UNDERSCORES = re.compile(r"_+")


def sanitize_client_name(client_name: Optional[str]) -> str:
    """
    Reduce a client name to ASCII letters, digits and underscores.

    Example:
        >>> sanitize_client_name("Brain & Socket  LLC")
        'Brain_Socket_LLC'
    """
    raw = (client_name or "").strip() or FALLBACK_CLIENT_NAME
    cleaned = _NON_ALPHANUMERIC.sub("", raw)
    cleaned = _WHITESPACE.sub("_", cleaned)
    cleaned = _UNDERSCORES.sub("_", cleaned)
    return cleaned[:MAX_CLIENT_NAME_LENGTH] or FALLBACK_CLIENT_NAME


def file_extension(original_file_name: str) -> str:
    """Lower-cased extension of a file name, or "file" when there is none."""
    if "." not in original_file_name:
        return FALLBACK_EXTENSION
    return original_file_name.rsplit(".", 1)[1].lower() or FALLBACK_EXTENSION


def smart_file_name(
    order_id: uuid.UUID,
    client_name: Optional[str],
    file_type: AttachmentType,
    original_file_name: str,
    timestamp_ms: Optional[int] = None,
) -> str:
    """
    Build the stored name of an uploaded file.

    Args:
        order_id: Owning order
        client_name: Client name on the order
        file_type: Uploaded file type (archived mockups are never uploaded)
        original_file_name: Name the file was uploaded with
        timestamp_ms: Upload time in epoch milliseconds, defaults to now

    Returns:
        Generated file name

    Raises:
        ValidationFailedError: If file_type cannot be uploaded
    """
    code = file_type.file_code
    if code is None:
        raise ValidationFailedError(
            "Files of this type cannot be uploaded", file_type=file_type.value
        )
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    return (
        f"ORD-{str(order_id)[:8]}_{sanitize_client_name(client_name)}"
        f"_{code}_{timestamp_ms}.{file_extension(original_file_name)}"
    )


def build_storage_path(
    company_id: uuid.UUID,
    order_id: uuid.UUID,
    category: str,
    file_name: str,
) -> str:
    """
    Blob store key for an order file.

    Raises:
        ValidationFailedError: If category or file name would escape the folder
    """
    for label, part in (("category", category), ("file_name", file_name)):
        if not part or "/" in part or part in (".", ".."):
            raise ValidationFailedError(f"Invalid {label} for storage path", **{label: part})
    return f"{company_id}/{order_id}/{category}/{file_name}"
