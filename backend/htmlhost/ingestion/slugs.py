import logging
import re
import secrets
import string

from sqlmodel import Session

from htmlhost import crud
from htmlhost.core.errors import AllocationExhausted, InvalidSlug, SlugConflict

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,100}$")

# 与路由前缀冲突的保留词
RESERVED_SLUGS = frozenset(
    {"api", "health", "list", "admin", "static", "assets", "css", "js", "images"}
)

SLUG_ALPHABET = string.ascii_lowercase + string.digits
RANDOM_SLUG_LENGTH = 8
MAX_ATTEMPTS = 10


def normalize_slug(candidate: str) -> str:
    return candidate.strip().lower()


class SlugAllocator:
    """
    Picks URL slugs and checks them against the metadata store.

    The store check here is advisory. The reservation itself happens when the
    record is inserted, where the unique index on ``slug`` settles races.
    """

    def __init__(self, session: Session, max_attempts: int = MAX_ATTEMPTS):
        self.session = session
        self.max_attempts = max_attempts

    @staticmethod
    def validate(candidate: str) -> bool:
        return bool(SLUG_PATTERN.match(candidate))

    @staticmethod
    def is_reserved(candidate: str) -> bool:
        return candidate.lower() in RESERVED_SLUGS

    @staticmethod
    def generate() -> str:
        return "".join(secrets.choice(SLUG_ALPHABET) for _ in range(RANDOM_SLUG_LENGTH))

    def check_custom(self, custom_slug: str) -> str:
        """Normalize a requested slug and reject it if it can never be allocated."""
        slug = normalize_slug(custom_slug)
        if not self.validate(slug):
            raise InvalidSlug(
                "Invalid slug format. Use only letters, numbers, hyphens and "
                "underscores (max 100 characters)"
            )
        if self.is_reserved(slug):
            raise SlugConflict(
                "This slug is reserved. Choose a different one.", slug=slug, reserved=True
            )
        return slug

    def allocate(self, custom_slug: str | None = None) -> str:
        if custom_slug and custom_slug.strip():
            slug = self.check_custom(custom_slug)
            if crud.slug_exists(session=self.session, slug=slug):
                raise SlugConflict(
                    "Slug already exists. Choose a different one or update it instead.",
                    slug=slug,
                )
            return slug

        for _ in range(self.max_attempts):
            slug = self.generate()
            if not crud.slug_exists(session=self.session, slug=slug):
                return slug
            logger.warning(f"Random slug collision on {slug}")
        raise AllocationExhausted("Failed to generate a unique slug. Please try again.")
