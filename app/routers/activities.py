import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, select

from app.carbon_model import ACTIVITY_TYPES, EmissionsEstimator, InvalidActivityError
from app.climatiq import get_estimator
from app.database import get_db
from app.models import Activity, as_utc, utcnow
from app.schemas import ActivityCreate, ActivityRead, ActivityUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activities", tags=["Activities"])

KIND_FIELDS = (
    "distance",
    "transport_mode",
    "food_type",
    "quantity",
    "unit",
    "energy_consumed",
    "energy_unit",
)


def get_activity_or_404(db: Session, activity_id: str) -> Activity:
    try:
        pk = int(activity_id)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid activity ID format")
    if pk < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid activity ID format")

    activity = db.get(Activity, pk)
    if not activity:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Activity not found")
    return activity


def save_activity(db: Session, activity: Activity) -> Activity:
    try:
        db.add(activity)
        db.commit()
        db.refresh(activity)
        return activity
    except Exception:
        db.rollback()
        logger.exception("Failed to save activity to DB")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not save activity to database.",
        )


@router.post("/", response_model=ActivityRead, status_code=status.HTTP_201_CREATED)
async def create_activity(
    activity: ActivityCreate,
    db: Session = Depends(get_db),
    estimator: EmissionsEstimator = Depends(get_estimator),
):
    try:
        estimate = await estimator.estimate(activity.activity_type, activity.model_dump())
    except InvalidActivityError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    # Only the fields of this activity's kind are stored, in normalized form
    activity_data = activity.model_dump(exclude=set(KIND_FIELDS))
    activity_data.update(estimate.fields)
    activity_data["co2e"] = estimate.co2e
    # Stored dates are always UTC
    activity_data["date"] = as_utc(activity_data.get("date"))
    if activity_data["date"] is None:
        activity_data["date"] = utcnow()

    db_activity = Activity.model_validate(activity_data)
    return save_activity(db, db_activity)


@router.get("/", response_model=List[ActivityRead])
def list_activities(
    user_id: str = Query(default="default-user", alias="userId"),
    activity_type: Optional[str] = Query(default=None, alias="activityType"),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    query = select(Activity).where(Activity.user_id == user_id)
    if activity_type:
        query = query.where(Activity.activity_type == activity_type)
    if start_date:
        query = query.where(Activity.date >= as_utc(start_date))
    if end_date:
        query = query.where(Activity.date <= as_utc(end_date))

    activities = db.exec(query.order_by(Activity.date.desc()).limit(limit)).all()
    return activities


@router.get("/{activity_id}", response_model=ActivityRead)
def read_activity(activity_id: str, db: Session = Depends(get_db)):
    return get_activity_or_404(db, activity_id)


@router.put("/{activity_id}", response_model=ActivityRead)
async def update_activity(
    activity_id: str,
    activity_update: ActivityUpdate,
    db: Session = Depends(get_db),
    estimator: EmissionsEstimator = Depends(get_estimator),
):
    db_activity = get_activity_or_404(db, activity_id)

    update_data = activity_update.model_dump(exclude_unset=True)
    for key in ("user_id", "activity_type", "date"):
        if update_data.get(key) is None:
            update_data.pop(key, None)

    if "date" in update_data:
        update_data["date"] = as_utc(update_data["date"])

    new_type = update_data.get("activity_type")
    if new_type is not None and new_type not in ACTIVITY_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid activity type")

    kind_updates = {}
    for key in KIND_FIELDS:
        value = update_data.pop(key, None)
        if value is not None and value != "":
            kind_updates[key] = value

    will_change_type = new_type is not None and new_type != db_activity.activity_type
    if will_change_type or kind_updates:
        merged = {key: kind_updates.get(key, getattr(db_activity, key)) for key in KIND_FIELDS}
        try:
            estimate = await estimator.estimate(new_type or db_activity.activity_type, merged)
        except InvalidActivityError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        update_data.update(estimate.fields)
        update_data["co2e"] = estimate.co2e

    for key, value in update_data.items():
        setattr(db_activity, key, value)
    db_activity.updated_at = utcnow()

    return save_activity(db, db_activity)


@router.delete("/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_activity(activity_id: str, db: Session = Depends(get_db)):
    activity = get_activity_or_404(db, activity_id)

    try:
        db.delete(activity)
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to delete activity %s", activity_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not delete activity from database.",
        )
    return
