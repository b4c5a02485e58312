from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from database import get_db
from app_models import User
from app_utils.constants import UserRole, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from routers.deps import require_roles
from schemas import ComplaintMapResponse, ComplaintResponse, EscalationRunResponse, Page
from services import complaint_service
from services.escalation_service import run_escalation_sweep

router = APIRouter(prefix="/api/admin", tags=["Admin"])

admin_only = require_roles(UserRole.ADMIN)


@router.get("/complaints/mapdata", response_model=List[ComplaintMapResponse])
def get_map_data(
    min_lat: Optional[float] = Query(None, alias="minLat"),
    max_lat: Optional[float] = Query(None, alias="maxLat"),
    min_lng: Optional[float] = Query(None, alias="minLng"),
    max_lng: Optional[float] = Query(None, alias="maxLng"),
    category: Optional[str] = None,
    status: Optional[str] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    current_user: User = Depends(admin_only),
    db: Session = Depends(get_db),
):
    """
    Complaints for the admin map, filtered by bounding box, category,
    status and creation date range. Every filter is optional.
    """
    return complaint_service.get_map_data(
        db, min_lat, max_lat, min_lng, max_lng, category, status, start_date, end_date
    )


@router.get("/escalated", response_model=Page[ComplaintResponse])
def get_escalated(
    page: int = Query(0, ge=0),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(admin_only),
    db: Session = Depends(get_db),
):
    return complaint_service.list_escalated(db, page, size)


@router.post("/escalation/run", response_model=EscalationRunResponse)
async def run_escalation(current_user: User = Depends(admin_only)):
    result = await run_in_threadpool(run_escalation_sweep)
    return EscalationRunResponse(
        found=result.found,
        escalated=result.escalated,
        failed=result.failed,
        skipped=result.skipped,
    )
