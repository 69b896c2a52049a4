from sqlmodel import Field, SQLModel
from typing import Optional
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    # Naive datetimes are taken as UTC; SQLite hands them back without tzinfo
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


# --- Activity Model ---
class Activity(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(default="default-user", index=True)
    activity_type: str = Field(index=True)

    # commute
    distance: Optional[float] = None
    transport_mode: Optional[str] = None

    # food
    food_type: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None

    # electricity
    energy_consumed: Optional[float] = None
    energy_unit: Optional[str] = None

    co2e: float = 0.0
    date: datetime = Field(default_factory=utcnow, index=True)
    notes: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
