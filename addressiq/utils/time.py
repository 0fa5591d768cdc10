from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def expires_at(ttl: timedelta) -> float:
    return utc_now().timestamp() + ttl.total_seconds()


def is_expired(deadline: float) -> bool:
    return utc_now().timestamp() >= deadline
