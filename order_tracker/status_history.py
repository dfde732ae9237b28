"""
Status history: the map of status label -> ISO timestamp of the first time an
order entered that status.

The map is stored as JSON text; ``load`` is tolerant of every shape older rows
may hold (NULL, a JSON string, a broken string, an already-decoded dict) and
always returns a plain dict. Timestamps are UTC with millisecond precision and
a ``Z`` suffix, e.g. ``2024-05-01T10:00:00.000Z``.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

StatusHistory = Dict[str, str]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    # SQLite hands back naive datetimes; they are always UTC here.
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def load(raw: Any) -> StatusHistory:
    if raw is None:
        return {}

    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")

    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unparseable status history: %r", raw[:80])
            return {}

    if not isinstance(raw, dict):
        logger.warning("Discarding status history of unexpected type %s", type(raw).__name__)
        return {}

    return {str(label): str(stamp) for label, stamp in raw.items() if stamp is not None}


def dump(history: StatusHistory) -> str:
    return json.dumps(history, ensure_ascii=False)


def seed(status: str, created_at: datetime) -> StatusHistory:
    """History for a brand new order: its initial status at the creation instant."""
    return {status: to_iso(created_at)}


def record_transition(
    current: Any,
    new_status: str,
    initial_status: str,
    created_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> StatusHistory:
    """
    Return a new history with ``new_status`` added.

    An empty history is first backfilled with ``initial_status`` at
    ``created_at``. A status that already has a timestamp keeps it, so
    revisiting a status never moves its date.
    """
    history = dict(load(current))

    if not history and created_at is not None:
        history[initial_status] = to_iso(created_at)

    if new_status not in history:
        history[new_status] = to_iso(now or utcnow())

    return history
