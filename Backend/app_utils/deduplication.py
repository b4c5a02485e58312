"""
Complaint Deduplication

RULES:
1. Same category + within DUPLICATE_DISTANCE_THRESHOLD_KM + reported in the last
   DUPLICATE_HOURS_THRESHOLD hours → duplicate of the earliest such complaint
2. Complaints already flagged as duplicates are never canonical
3. Different category at the same spot → Allow
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from app_models import Complaint
from app_utils.geo import calculate_distance_km
import crud
from config import DUPLICATE_DISTANCE_THRESHOLD_KM, DUPLICATE_HOURS_THRESHOLD


def check_duplicate_complaint(
    db: Session,
    category: str,
    latitude: float,
    longitude: float,
    submitted_at: datetime,
    distance_threshold_km: float = DUPLICATE_DISTANCE_THRESHOLD_KM,
    hours_threshold: int = DUPLICATE_HOURS_THRESHOLD,
) -> Optional[Complaint]:
    """
    Returns the canonical complaint the new report duplicates, or None.
    """
    since = submitted_at - timedelta(hours=hours_threshold)
    candidates = crud.find_duplicate_candidates(db, category, since, submitted_at)

    for existing in candidates:
        distance = calculate_distance_km(latitude, longitude, existing.latitude, existing.longitude)
        if distance < distance_threshold_km:
            return existing

    return None
