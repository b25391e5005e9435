from datetime import datetime, timezone

# "never read" compares as the beginning of time
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
