"""
SM-2 scheduling for flashcard reviews.

compute_next_schedule turns (previous record, recall quality) into the next
record; select_due_cards builds the review queue from a user's records.
Both are pure: callers fetch and persist records themselves.
"""
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from schemas import (
    DEFAULT_EASINESS_FACTOR,
    MIN_EASINESS_FACTOR,
    SchedulingRecord,
    SuggestedCard,
)

logger = logging.getLogger(__name__)

MIN_QUALITY = 0
MAX_QUALITY = 5
PASSING_QUALITY = 3
DEFAULT_DUE_LIMIT = 20


def _utc(value: datetime) -> datetime:
    # BSON dates come back naive; they are always UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def clamp_quality(quality: int) -> int:
    if quality < MIN_QUALITY or quality > MAX_QUALITY:
        clamped = max(MIN_QUALITY, min(MAX_QUALITY, quality))
        logger.warning(f"Quality {quality} out of bounds, clamping to {clamped}")
        return clamped
    return quality


def new_record(user_id: str, flashcard_id: str,
               collection_id: Optional[str] = None,
               collection_name: Optional[str] = None) -> SchedulingRecord:
    return SchedulingRecord(
        user_id=user_id,
        flashcard_id=flashcard_id,
        easiness_factor=DEFAULT_EASINESS_FACTOR,
        repetitions=0,
        interval_days=0,
        original_collection_id=collection_id,
        collection_name=collection_name,
    )


def compute_next_schedule(current: Optional[SchedulingRecord], quality: int,
                          now: Optional[datetime] = None, *,
                          user_id: Optional[str] = None,
                          flashcard_id: Optional[str] = None,
                          collection_id: Optional[str] = None,
                          collection_name: Optional[str] = None) -> SchedulingRecord:
    """Apply one recall-quality rating and return the updated record.

    ``current`` is None on the first review of a card, in which case
    ``user_id`` and ``flashcard_id`` must identify the new record.
    ``collection_id``/``collection_name`` replace the carried collection
    context when given. ``current`` is left untouched.
    """
    if current is None:
        if not user_id or not flashcard_id:
            raise ValueError("user_id and flashcard_id are required for a first review")
        current = new_record(user_id, flashcard_id)

    now = _utc(now) if now is not None else datetime.now(timezone.utc)
    q = clamp_quality(quality)

    # EF is kept to 6 decimal places so ceil() sees 2.5, not 2.5000000000000004
    ease = round(max(MIN_EASINESS_FACTOR, current.easiness_factor - 0.8 + 0.28 * q - 0.02 * q * q), 6)

    if q < PASSING_QUALITY:
        reps = 0
        interval = 1
    else:
        reps = current.repetitions + 1
        if reps == 1:
            interval = 1
        elif reps == 2:
            interval = 6
        else:
            interval = math.ceil(max(current.interval_days, 1) * ease)

    update = {
        "easiness_factor": ease,
        "repetitions": reps,
        "interval_days": interval,
        "last_reviewed": now,
        "due_date": now + timedelta(days=interval),
    }
    if collection_id:
        update["original_collection_id"] = collection_id
    if collection_name is not None:
        update["collection_name"] = collection_name
    return current.model_copy(update=update)


def select_due_cards(records: Iterable[SchedulingRecord],
                     now: Optional[datetime] = None,
                     limit: int = DEFAULT_DUE_LIMIT) -> List[SuggestedCard]:
    """Cards due at ``now``, longest overdue first, at most ``limit`` of them.

    Records without a collection or a due date are skipped. Equal due dates
    keep their input order.
    """
    if limit <= 0:
        return []
    now = _utc(now) if now is not None else datetime.now(timezone.utc)

    due = []
    for record in records:
        if not record.original_collection_id or record.due_date is None:
            continue
        due_date = _utc(record.due_date)
        if due_date <= now:
            due.append(SuggestedCard(
                flashcard_id=record.flashcard_id,
                collection_id=record.original_collection_id,
                due_date=due_date,
                sm2_parameters=record,
            ))
    due.sort(key=lambda card: card.due_date)
    return due[:limit]


def record_from_document(doc: dict) -> SchedulingRecord:
    data = {k: v for k, v in doc.items() if k != "_id"}
    for key in ("due_date", "last_reviewed"):
        if isinstance(data.get(key), datetime):
            data[key] = _utc(data[key])
    return SchedulingRecord.model_validate(data)


def record_to_document(record: SchedulingRecord) -> dict:
    return record.model_dump()
