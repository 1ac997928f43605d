from datetime import datetime, timezone

from taskmate.db import Base

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

# sqlite hands back naive datetimes even for timezone=True columns
def as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

__all__ = ["Base", "now_utc", "as_utc"]
