"""
Injectable time and identity sources.

Services never call datetime.now() or uuid4() directly so tests can pin
both. A Clock returns an aware UTC datetime; an IdGenerator takes a record
prefix ("tx", "stmt", ...) and returns a new string id.
"""

from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

Clock = Callable[[], datetime]
IdGenerator = Callable[[str], str]


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


def new_id(prefix: str) -> str:
    """Default id generator: ``<prefix>_<32 hex chars>``."""
    return f"{prefix}_{uuid4().hex}"
