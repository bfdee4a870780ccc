"""
Tests for organization logo validation and storage.
"""

import io
import uuid

import pytest
from fastapi import UploadFile

from app.services import logo_storage
from app.services.logo_storage import LogoValidationError, find_logo, media_type_for, save_logo, validate_logo

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class TestValidateLogo:
    def test_png(self):
        assert validate_logo("image/png", PNG) == "png"

    def test_content_type_parameters_ignored(self):
        assert validate_logo("image/svg+xml; charset=utf-8", b"<svg/>") == "svg"

    @pytest.mark.parametrize("data", [None, b""])
    def test_missing_or_empty(self, data):
        with pytest.raises(LogoValidationError) as exc_info:
            validate_logo("image/png", data)
        assert exc_info.value.status_code == 400

    def test_disallowed_type(self):
        with pytest.raises(LogoValidationError) as exc_info:
            validate_logo("application/pdf", b"%PDF")
        assert exc_info.value.status_code == 400

    def test_too_large(self):
        with pytest.raises(LogoValidationError) as exc_info:
            validate_logo("image/png", b"\x00" * (2 * 1024 * 1024 + 1))
        assert exc_info.value.status_code == 413


class TestSaveLogo:
    def test_new_upload_replaces_previous_format(self, tmp_path, monkeypatch):
        monkeypatch.setattr(logo_storage, "logo_dir", lambda: tmp_path / "logos")
        org_id = uuid.uuid4()

        first = save_logo(org_id, "image/png", PNG)
        second = save_logo(org_id, "image/webp", b"RIFF0000WEBP")

        assert not first.exists()
        assert second.read_bytes() == b"RIFF0000WEBP"
        assert find_logo(org_id) == second
        assert media_type_for(second) == "image/webp"

    def test_no_logo(self, tmp_path, monkeypatch):
        monkeypatch.setattr(logo_storage, "logo_dir", lambda: tmp_path / "logos")
        assert find_logo(uuid.uuid4()) is None


class TestReadUpload:
    async def test_reads_at_most_one_byte_past_the_limit(self):
        limit = logo_storage.get_settings().MAX_LOGO_SIZE
        upload = UploadFile(io.BytesIO(b"\x00" * (limit * 3)), filename="huge.png")

        data = await logo_storage.read_upload(upload)

        assert len(data) == limit + 1
        with pytest.raises(LogoValidationError) as exc_info:
            validate_logo("image/png", data)
        assert exc_info.value.status_code == 413

    async def test_small_file_read_whole(self):
        upload = UploadFile(io.BytesIO(PNG), filename="logo.png")
        assert await logo_storage.read_upload(upload) == PNG

    async def test_no_file(self):
        assert await logo_storage.read_upload(None) is None
