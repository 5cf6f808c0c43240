"""Work-submission intake.

Checks a file reference or link before it reaches the engine and turns it
into a Submission. Size and extension limits live here, not in the engine.
"""

from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import urlparse

from cleardeal.errors import ValidationError
from cleardeal.jobs.models import Submission, SubmissionType

MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024

ALLOWED_FILE_EXTENSIONS = frozenset(
    {".pdf", ".docx", ".doc", ".png", ".jpg", ".jpeg", ".zip", ".rar", ".txt", ".md"}
)


def _require_description(description: Optional[str]) -> str:
    if not description or not description.strip():
        raise ValidationError("Please provide a description of your work")
    return description.strip()


def link_submission(url: str, description: str) -> Submission:
    """Validate an http(s) link to submitted work."""
    description = _require_description(description)
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f"Not a valid http(s) URL: {url!r}")
    return Submission(type=SubmissionType.LINK, content=url, description=description)


def file_submission(filename: str, size_bytes: int, description: str, content: Optional[str] = None) -> Submission:
    """Validate an uploaded file reference.

    ``content`` is where the file ended up (a path or storage URL); it
    defaults to the filename.
    """
    description = _require_description(description)
    if not filename or not filename.strip():
        raise ValidationError("Please select a file to upload")
    if size_bytes < 0:
        raise ValidationError("File size cannot be negative")
    if size_bytes > MAX_FILE_SIZE_BYTES:
        raise ValidationError("File too large (max 10MB)")

    extension = PurePosixPath(filename.strip().lower()).suffix
    if extension not in ALLOWED_FILE_EXTENSIONS:
        raise ValidationError(
            f"Unsupported file type {extension or '(none)'}; "
            f"allowed: {', '.join(sorted(ALLOWED_FILE_EXTENSIONS))}"
        )

    return Submission(
        type=SubmissionType.FILE,
        content=content or filename.strip(),
        description=description,
    )
