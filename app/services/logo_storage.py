"""
Organization logo storage on the local media volume.

Logos live at MEDIA_ROOT/logos/{org_id}.{ext}; one file per organization, a
new upload replaces the previous one whatever its format.
"""

import logging
from pathlib import Path
from uuid import UUID

from app.config.settings import get_settings

logger = logging.getLogger(__name__)

LOGO_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/svg+xml": "svg",
    "image/webp": "webp",
}
MEDIA_TYPES = {ext: content_type for content_type, ext in LOGO_EXTENSIONS.items()}


class LogoValidationError(Exception):
    """Rejected upload. status_code is the HTTP status the API answers with."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def logo_dir() -> Path:
    return Path(get_settings().MEDIA_ROOT) / "logos"


async def read_upload(file) -> bytes | None:
    """Read an uploaded logo, stopping one byte past MAX_LOGO_SIZE so oversize files fail validation."""
    if file is None:
        return None
    return await file.read(get_settings().MAX_LOGO_SIZE + 1)


def validate_logo(content_type: str | None, data: bytes | None) -> str:
    """
    Check an uploaded logo and return the file extension to store it with.

    Raises:
        LogoValidationError: 400 when missing, empty or of a disallowed type;
            413 when larger than MAX_LOGO_SIZE
    """
    settings = get_settings()

    if data is None:
        raise LogoValidationError("No file provided")
    if len(data) == 0:
        raise LogoValidationError("Uploaded file is empty")
    if len(data) > settings.MAX_LOGO_SIZE:
        raise LogoValidationError(
            f"File too large (max {settings.MAX_LOGO_SIZE // 1024} KB)",
            status_code=413,
        )

    normalized = (content_type or "").split(";")[0].strip().lower()
    if normalized not in settings.ALLOWED_LOGO_TYPES or normalized not in LOGO_EXTENSIONS:
        raise LogoValidationError(f"Unsupported file type: {content_type or 'unknown'}")

    return LOGO_EXTENSIONS[normalized]


def save_logo(org_id: UUID, content_type: str | None, data: bytes | None) -> Path:
    """Validate and write the logo, removing any earlier logo of the organization."""
    extension = validate_logo(content_type, data)

    directory = logo_dir()
    directory.mkdir(parents=True, exist_ok=True)

    previous = find_logo(org_id)
    if previous is not None:
        previous.unlink()

    path = directory / f"{org_id}.{extension}"
    path.write_bytes(data)
    logger.info(f"Stored logo for organization {org_id} ({len(data)} bytes)")
    return path


def find_logo(org_id: UUID) -> Path | None:
    directory = logo_dir()
    for extension in MEDIA_TYPES:
        path = directory / f"{org_id}.{extension}"
        if path.is_file():
            return path
    return None


def media_type_for(path: Path) -> str:
    return MEDIA_TYPES.get(path.suffix.lstrip("."), "application/octet-stream")
