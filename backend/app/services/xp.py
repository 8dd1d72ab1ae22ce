import uuid
from datetime import datetime, timedelta, timezone

from app.services.store import LearningStore


def _as_uuid(value) -> uuid.UUID | None:
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except Exception:
        return None


def _as_aware(ts: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    return ts if ts.tzinfo is not None else ts.replace(tzinfo=timezone.utc)


def _apply_streak_on_activity(store: LearningStore, *, user_id, now: datetime) -> None:
    uid = _as_uuid(user_id)
    if uid is None:
        return

    user = store.get_user(uid)
    if user is None:
        return

    # users.last_activity_at is the source of truth; learning_events cover older rows.
    last_ts = user.last_activity_at or store.last_event_at(uid)

    if last_ts is None:
        user.streak = 1
        user.last_activity_at = now
        return

    last_day = _as_aware(last_ts).date()
    today = now.date()
    if last_day == today:
        user.last_activity_at = now
        return
    if last_day == (today - timedelta(days=1)):
        user.streak = int(user.streak or 0) + 1
        user.last_activity_at = now
        return
    user.streak = 1
    user.last_activity_at = now


def award_xp(store: LearningStore, *, user_id, xp: int) -> None:
    if not xp:
        return

    uid = _as_uuid(user_id)
    if uid is None:
        return

    store.increment_xp(uid, int(xp))


def record_activity_and_award_xp(store: LearningStore, *, user_id, xp: int) -> None:
    now = datetime.now(timezone.utc)
    _apply_streak_on_activity(store, user_id=user_id, now=now)
    store.flush()
    award_xp(store, user_id=user_id, xp=xp)
