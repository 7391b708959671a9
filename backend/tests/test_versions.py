from datetime import datetime, timezone

import pytest

from printshop.errors import IllegalTransition, ValidationError
from printshop.schemas.file import FileUpload
from printshop.services import versions

NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def _upload(name="design.png", size=1536):
    return FileUpload(
        original_name=name,
        storage={
            "url": f"https://storage.example/{name}",
            "objectId": f"obj-{name}",
            "mimeType": "image/png",
            "sizeBytes": size,
        },
        uploaded_by="designer-1",
        category="design",
        project_id="p1",
    )


class TestVersionChain:
    def test_first_upload(self):
        file = versions.new_file(_upload(), NOW)
        assert file.version == 1
        assert file.root_file_id == file.id
        assert file.is_latest_version
        assert file.approval_status == "pending"

    def test_new_version_flips_parent(self):
        parent = versions.new_file(_upload(), NOW)
        child = versions.create_version(parent, _upload("design-v2.png"), NOW)
        assert parent.is_latest_version is False
        assert child.is_latest_version is True
        assert child.version == 2
        assert child.parent_file_id == parent.id
        assert child.root_file_id == parent.id
        assert versions.latest_in_chain([parent, child]) is child

    def test_child_inherits_lineage(self):
        parent = versions.new_file(_upload(), NOW)
        upload = _upload("v2.png")
        upload.project_id = "other"
        upload.category = "final"
        child = versions.create_version(parent, upload, NOW)
        assert child.project_id == "p1"
        assert child.category == "design"

    def test_cannot_branch_from_old_version(self):
        parent = versions.new_file(_upload(), NOW)
        versions.create_version(parent, _upload("v2.png"), NOW)
        with pytest.raises(IllegalTransition):
            versions.create_version(parent, _upload("v2b.png"), NOW)


class TestApproval:
    def test_set_approval(self):
        file = versions.new_file(_upload(), NOW)
        previous = versions.set_approval(file, "needs-revision", "client-1", NOW, "Darker blue")
        assert previous == "pending"
        assert file.approval_status == "needs-revision"
        assert file.approved_by == "client-1"
        assert file.approval_comments == "Darker blue"
        assert file.version == 1
        assert file.is_latest_version

    def test_unknown_status(self):
        file = versions.new_file(_upload(), NOW)
        with pytest.raises(ValidationError):
            versions.set_approval(file, "maybe", "client-1", NOW)

    def test_new_version_starts_pending(self):
        parent = versions.new_file(_upload(), NOW)
        versions.set_approval(parent, "approved", "client-1", NOW)
        child = versions.create_version(parent, _upload("v2.png"), NOW)
        assert child.approval_status == "pending"


class TestFileProperties:
    def test_formatted_size_and_type(self):
        file = versions.new_file(_upload("Cover.PNG", size=1536), NOW)
        assert file.extension == "png"
        assert file.is_image
        assert file.formatted_size == "1.5 KB"

    def test_zero_bytes(self):
        file = versions.new_file(_upload("empty.pdf", size=0), NOW)
        assert file.formatted_size == "0 Bytes"
        assert not file.is_image
