"""
Attachment lifecycle manager.

Files are added to an order when they are uploaded and are never deleted.
The only state change an attachment can go through is the demotion of a
design mockup to an archived mockup when sales requests a revision; that
demotion is one multi-row UPDATE executed inside the caller's transaction,
so it commits or rolls back together with the status change.

The manager never commits. Callers own the transaction.
"""

import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.core.exceptions import (
    DependencyFailureError,
    NotFoundError,
    ValidationFailedError,
)
from printshop.core.logging import get_logger
from printshop.database.base import utcnow
from printshop.database.models.order import Order, OrderAttachment
from printshop.services.orders.enums import AttachmentType, AttachmentView

logger = get_logger(__name__)


@dataclass(frozen=True)
class FileRef:
    """Reference to a file already stored in the blob store."""

    file_url: str
    file_name: str
    file_size: Optional[int] = None


class AttachmentManager:
    """Adds, archives and lists order attachments."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_attachment(
        self,
        order_id: uuid.UUID,
        file_type: AttachmentType,
        file_ref: FileRef,
        uploader_id: Optional[uuid.UUID],
    ) -> OrderAttachment:
        """
        Attach a file to an existing order.

        Any number of files of the same type may be attached.

        Args:
            order_id: Owning order
            file_type: Type of the uploaded file
            file_ref: Stored file reference
            uploader_id: User who uploaded the file

        Returns:
            Created attachment

        Raises:
            NotFoundError: If the order does not exist
            ValidationFailedError: If file_type is archived_mockup or the
                reference is incomplete
        """
        try:
            company_id = await self.session.scalar(
                select(Order.company_id).where(Order.id == order_id)
            )
        except SQLAlchemyError as e:
            raise DependencyFailureError(
                "Failed to load order for attachment", order_id=str(order_id)
            ) from e
        if company_id is None:
            raise NotFoundError("Order not found", order_id=str(order_id))

        attachments = await self.add_attachments(
            order_id, company_id, file_type, [file_ref], uploader_id
        )
        return attachments[0]

    async def add_attachments(
        self,
        order_id: uuid.UUID,
        company_id: uuid.UUID,
        file_type: AttachmentType,
        file_refs: Sequence[FileRef],
        uploader_id: Optional[uuid.UUID],
    ) -> List[OrderAttachment]:
        """
        Insert attachment rows for an order the caller has already loaded.

        Raises:
            ValidationFailedError: If file_type is not uploadable or a
                reference is incomplete
        """
        if not file_type.is_uploadable:
            raise ValidationFailedError(
                "Archived mockups cannot be uploaded directly",
                file_type=file_type.value,
            )
        for ref in file_refs:
            self._validate_ref(ref)

        attachments = [
            OrderAttachment(
                order_id=order_id,
                company_id=company_id,
                file_url=ref.file_url,
                file_name=ref.file_name,
                file_size=ref.file_size,
                file_type=file_type,
                uploader_id=uploader_id,
            )
            for ref in file_refs
        ]
        self.session.add_all(attachments)
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error(
                "Failed to insert attachments",
                order_id=str(order_id),
                error=str(e),
            )
            raise DependencyFailureError(
                "Failed to store attachments", order_id=str(order_id)
            ) from e

        logger.info(
            "Attachments added",
            order_id=str(order_id),
            file_type=file_type.value,
            count=len(attachments),
        )
        return attachments

    async def archive_mockups(self, order_id: uuid.UUID) -> int:
        """
        Demote every live design mockup of an order to archived_mockup.

        Idempotent: once archived, a second call matches no rows.

        Returns:
            Number of attachments archived
        """
        statement = (
            update(OrderAttachment)
            .where(
                OrderAttachment.order_id == order_id,
                OrderAttachment.file_type == AttachmentType.DESIGN_MOCKUP,
            )
            .values(file_type=AttachmentType.ARCHIVED_MOCKUP, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            logger.error("Failed to archive mockups", order_id=str(order_id), error=str(e))
            raise DependencyFailureError(
                "Failed to archive mockups", order_id=str(order_id)
            ) from e

        count = result.rowcount or 0
        logger.info("Mockups archived", order_id=str(order_id), count=count)
        return count

    async def list_attachments(
        self,
        order_id: uuid.UUID,
        view: AttachmentView = AttachmentView.CURRENT,
        file_types: Optional[Iterable[AttachmentType]] = None,
    ) -> List[OrderAttachment]:
        """
        List attachments of an order, oldest first.

        Args:
            order_id: Owning order
            view: Predefined listing; CURRENT leaves archived mockups out,
                HISTORY returns only archived mockups
            file_types: Explicit types, overrides ``view``
        """
        types = frozenset(file_types) if file_types is not None else view.file_types
        if not types:
            return []

        statement = (
            select(OrderAttachment)
            .where(
                OrderAttachment.order_id == order_id,
                OrderAttachment.file_type.in_(sorted(types, key=lambda t: t.value)),
            )
            .order_by(OrderAttachment.created_at, OrderAttachment.id)
            .execution_options(populate_existing=True)
        )
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as e:
            raise DependencyFailureError(
                "Failed to list attachments", order_id=str(order_id)
            ) from e
        return list(result.scalars().all())

    @staticmethod
    def _validate_ref(ref: FileRef) -> None:
        if not ref.file_url or not ref.file_url.strip():
            raise ValidationFailedError("File URL is required", file_name=ref.file_name)
        if not ref.file_name or not ref.file_name.strip():
            raise ValidationFailedError("File name is required", file_url=ref.file_url)
        if ref.file_size is not None and ref.file_size < 0:
            raise ValidationFailedError(
                "File size cannot be negative", file_name=ref.file_name
            )
