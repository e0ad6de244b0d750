"""
Tests for attachment naming and the attachment lifecycle manager.
"""

import uuid

import pytest

from printshop.core.exceptions import NotFoundError, ValidationFailedError
from printshop.services.attachments.manager import AttachmentManager, FileRef
from printshop.services.attachments.naming import (
    build_storage_path,
    file_extension,
    sanitize_client_name,
    smart_file_name,
)
from printshop.services.orders.enums import AttachmentType, AttachmentView


def file_ref(name: str) -> FileRef:
    return FileRef(file_url=f"https://files.example/{name}", file_name=name, file_size=1024)


# ============================================================================
# Naming
# ============================================================================


class TestNaming:
    def test_sanitize_client_name(self):
        assert sanitize_client_name("Brain & Socket  LLC") == "Brain_Socket_LLC"
        assert sanitize_client_name("  ") == "Order"
        assert sanitize_client_name(None) == "Order"
        assert sanitize_client_name("!!!") == "Order"
        assert len(sanitize_client_name("A" * 80)) == 30

    def test_file_extension(self):
        assert file_extension("Proof.PNG") == "png"
        assert file_extension("archive.tar.gz") == "gz"
        assert file_extension("README") == "file"

    def test_smart_file_name(self):
        order_id = uuid.UUID("12345678-aaaa-bbbb-cccc-1234567890ab")

        name = smart_file_name(
            order_id, "Acme Trading", AttachmentType.DESIGN_MOCKUP, "cards.pdf", 1700000000000
        )

        assert name == "ORD-12345678_Acme_Trading_PROOF_1700000000000.pdf"

    def test_print_and_reference_codes(self):
        order_id = uuid.uuid4()

        assert "_PRINT_" in smart_file_name(order_id, "X", AttachmentType.PRINT_FILE, "a.ai", 1)
        assert "_REF_" in smart_file_name(order_id, "X", AttachmentType.CLIENT_REFERENCE, "a.jpg", 1)

    def test_archived_mockups_cannot_be_named_for_upload(self):
        with pytest.raises(ValidationFailedError):
            smart_file_name(uuid.uuid4(), "X", AttachmentType.ARCHIVED_MOCKUP, "a.png")

    def test_storage_path(self):
        company_id, order_id = uuid.uuid4(), uuid.uuid4()

        path = build_storage_path(company_id, order_id, "mockups", "proof.png")

        assert path == f"{company_id}/{order_id}/mockups/proof.png"

    @pytest.mark.parametrize("category,name", [("..", "a.png"), ("mockups", "../a.png"), ("", "a")])
    def test_storage_path_rejects_traversal(self, category, name):
        with pytest.raises(ValidationFailedError):
            build_storage_path(uuid.uuid4(), uuid.uuid4(), category, name)


# ============================================================================
# Lifecycle
# ============================================================================


class TestAttachmentManager:
    async def test_add_and_list(self, session, create_order):
        order_id = await create_order()
        manager = AttachmentManager(session)

        await manager.add_attachment(
            order_id, AttachmentType.CLIENT_REFERENCE, file_ref("brief.pdf"), uuid.uuid4()
        )
        await manager.add_attachment(
            order_id, AttachmentType.CLIENT_REFERENCE, file_ref("logo.svg"), None
        )
        await session.commit()

        attachments = await manager.list_attachments(order_id)

        assert [a.file_name for a in attachments] == ["brief.pdf", "logo.svg"]

    async def test_add_to_missing_order(self, session, seed):
        manager = AttachmentManager(session)

        with pytest.raises(NotFoundError):
            await manager.add_attachment(
                uuid.uuid4(), AttachmentType.PRINT_FILE, file_ref("a.pdf"), None
            )

    async def test_archived_mockup_cannot_be_uploaded(self, session, create_order):
        order_id = await create_order()
        manager = AttachmentManager(session)

        with pytest.raises(ValidationFailedError, match="Archived mockups"):
            await manager.add_attachment(
                order_id, AttachmentType.ARCHIVED_MOCKUP, file_ref("old.png"), None
            )

    @pytest.mark.parametrize(
        "ref",
        [
            FileRef(file_url="", file_name="a.png"),
            FileRef(file_url="https://files.example/a.png", file_name=" "),
            FileRef(file_url="https://files.example/a.png", file_name="a.png", file_size=-1),
        ],
    )
    async def test_incomplete_references(self, session, create_order, ref):
        order_id = await create_order()
        manager = AttachmentManager(session)

        with pytest.raises(ValidationFailedError):
            await manager.add_attachment(order_id, AttachmentType.PRINT_FILE, ref, None)

    async def test_archive_mockups_moves_them_to_history(self, session, create_order):
        order_id = await create_order()
        manager = AttachmentManager(session)
        await manager.add_attachment(
            order_id, AttachmentType.CLIENT_REFERENCE, file_ref("brief.pdf"), None
        )
        await manager.add_attachment(
            order_id, AttachmentType.DESIGN_MOCKUP, file_ref("v1-front.png"), None
        )
        await manager.add_attachment(
            order_id, AttachmentType.DESIGN_MOCKUP, file_ref("v1-back.png"), None
        )

        archived = await manager.archive_mockups(order_id)
        await session.commit()

        current = await manager.list_attachments(order_id, AttachmentView.CURRENT)
        history = await manager.list_attachments(order_id, AttachmentView.HISTORY)
        everything = await manager.list_attachments(order_id, AttachmentView.ALL)
        assert archived == 2
        assert [a.file_name for a in current] == ["brief.pdf"]
        assert {a.file_name for a in history} == {"v1-front.png", "v1-back.png"}
        assert all(a.file_type is AttachmentType.ARCHIVED_MOCKUP for a in history)
        assert len(everything) == 3

    async def test_archive_is_idempotent(self, session, create_order):
        order_id = await create_order()
        manager = AttachmentManager(session)
        await manager.add_attachment(
            order_id, AttachmentType.DESIGN_MOCKUP, file_ref("v1.png"), None
        )

        assert await manager.archive_mockups(order_id) == 1
        assert await manager.archive_mockups(order_id) == 0

    async def test_explicit_type_filter(self, session, create_order):
        order_id = await create_order()
        manager = AttachmentManager(session)
        await manager.add_attachment(
            order_id, AttachmentType.PRINT_FILE, file_ref("final.pdf"), None
        )
        await manager.add_attachment(
            order_id, AttachmentType.CLIENT_REFERENCE, file_ref("brief.pdf"), None
        )

        print_files = await manager.list_attachments(
            order_id, file_types=[AttachmentType.PRINT_FILE]
        )

        assert [a.file_name for a in print_files] == ["final.pdf"]
        assert await manager.list_attachments(order_id, file_types=[]) == []
