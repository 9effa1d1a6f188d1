"""
Identifier and timestamp helpers shared by every persisted document.

Ids are 32-char hex strings from a random 128-bit UUID. Timestamps are
timezone-aware UTC; SQLite hands them back naive, so serialisation goes
through ``isoformat_utc`` to keep the wire format stable.
"""

import re
import uuid
from datetime import datetime, timezone

_OBJECT_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def new_object_id() -> str:
    return uuid.uuid4().hex


def is_object_id(value) -> bool:
    return isinstance(value, str) and bool(_OBJECT_ID_RE.match(value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_utc(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
