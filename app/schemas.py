from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, field_validator
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional, Union
from datetime import datetime

from app.models import as_utc

# Quantities stay loosely typed on input so the estimator can turn bad values
# into a 400 with a readable message instead of a 422. Strict members keep a
# JSON true from being read as 1.0.
Quantity = Optional[Union[StrictInt, StrictFloat, StrictBool, str]]


class CamelModel(BaseModel):
    # to_camel turns co2e into co2E, so those fields carry explicit aliases
    # Wire format is camelCase (activityType, energyConsumed, ...); snake_case is accepted too
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Activity field groups ---

class ActivityFields(CamelModel):
    # commute
    distance: Quantity = None
    transport_mode: Optional[str] = None
    # food
    food_type: Optional[str] = None
    quantity: Quantity = None
    unit: Optional[str] = None
    # electricity
    energy_consumed: Quantity = None
    energy_unit: Optional[str] = None


# --- Activity Schemas ---

class ActivityCreate(ActivityFields):
    user_id: str = "default-user"
    activity_type: Optional[str] = None
    date: Optional[datetime] = None
    notes: Optional[str] = None


class ActivityUpdate(ActivityFields):
    user_id: Optional[str] = None
    activity_type: Optional[str] = None
    date: Optional[datetime] = None
    notes: Optional[str] = None


class ActivityRead(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    activity_type: str
    distance: Optional[float] = None
    transport_mode: Optional[str] = None
    food_type: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    energy_consumed: Optional[float] = None
    energy_unit: Optional[str] = None
    co2e: float = Field(alias="co2e")
    date: datetime
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("date", "created_at", "updated_at")
    @classmethod
    def _in_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


# --- Emission Schemas ---

class CalculateRequest(ActivityFields):
    activity_type: Optional[str] = None


class CalculateResponse(CamelModel):
    success: bool = True
    co2e: float = Field(alias="co2e")
    unit: str = "kg"


class EmissionTotals(CamelModel):
    success: bool = True
    total_co2e: float = Field(alias="totalCo2e")
    count: int
    breakdown_by_activity: Dict[str, float]
    activities: List[ActivityRead]


class PeriodBucket(CamelModel):
    date: str
    co2e: float = Field(alias="co2e")


class EmissionsByPeriod(CamelModel):
    success: bool = True
    period: str
    data: List[PeriodBucket]
