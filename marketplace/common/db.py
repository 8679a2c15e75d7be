from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    # naive UTC; SQLite's DateTime type does not keep tzinfo
    return datetime.now(timezone.utc).replace(tzinfo=None)
