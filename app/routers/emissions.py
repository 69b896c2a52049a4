from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session, select

from app import reports
from app.carbon_model import EmissionsEstimator, InvalidActivityError
from app.climatiq import get_estimator
from app.database import get_db
from app.models import Activity, as_utc, utcnow
from app.schemas import ActivityRead, CalculateRequest, CalculateResponse, EmissionsByPeriod, EmissionTotals

router = APIRouter(prefix="/emissions", tags=["Emissions"])


@router.post("/calculate", response_model=CalculateResponse)
async def calculate_emissions(
    payload: CalculateRequest,
    estimator: EmissionsEstimator = Depends(get_estimator),
):
    """
    Estimates the CO2e of an activity without storing anything.
    """
    try:
        estimate = await estimator.estimate(payload.activity_type, payload.model_dump())
    except InvalidActivityError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return CalculateResponse(co2e=estimate.co2e)


@router.get("/total", response_model=EmissionTotals)
def get_total_emissions(
    user_id: str = Query(default="default-user", alias="userId"),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
):
    query = select(Activity).where(Activity.user_id == user_id)
    if start_date:
        query = query.where(Activity.date >= as_utc(start_date))
    if end_date:
        query = query.where(Activity.date <= as_utc(end_date))

    activities = db.exec(query.order_by(Activity.date.desc())).all()

    return EmissionTotals(
        total_co2e=reports.total_co2e(activities),
        count=len(activities),
        breakdown_by_activity=reports.breakdown_by_type(activities),
        activities=[ActivityRead.model_validate(a) for a in activities],
    )


@router.get("/by-period", response_model=EmissionsByPeriod)
def get_emissions_by_period(
    user_id: str = Query(default="default-user", alias="userId"),
    period: str = Query(default="day", pattern="^(day|week)$"),
    days: int = Query(default=7, ge=0),
    db: Session = Depends(get_db),
):
    """
    Sums emissions per day, or per Sunday-to-Saturday week, over the last `days` days.
    """
    start = utcnow() - timedelta(days=days)

    activities = db.exec(
        select(Activity)
        .where(Activity.user_id == user_id)
        .where(Activity.date >= start)
        .order_by(Activity.date.asc())
    ).all()

    return EmissionsByPeriod(period=period, data=reports.group_by_period(activities, period))
