from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    # Naive UTC, matching what SQLite hands back for DATETIME columns
    return datetime.now(timezone.utc).replace(tzinfo=None)
