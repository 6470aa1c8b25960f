from pydantic import BaseModel


class UploadOptions(BaseModel):
    """Caller-supplied options for a new upload."""

    slug: str | None = None
    description: str = ""
    duration: str | None = None  # unknown values fall back to 30 days
    password: str | None = None
    original_name: str = ""


class UpdateOptions(BaseModel):
    """
    Options for replacing the content behind an existing slug.

    Only fields that were explicitly set are applied: an unset ``duration``
    keeps the current expiry, an unset ``password`` keeps the current hash,
    and ``password=None`` or ``""`` removes protection.
    """

    description: str | None = None
    duration: str | None = None
    password: str | None = None
