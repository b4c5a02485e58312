"""
SLA escalation sweep.

Every complaint that is not RESOLVED, not yet escalated and past its due date
is moved to ESCALATED. Each complaint is committed on its own so a failure on
one row never undoes the others.
"""
import asyncio
import logging
import threading
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app_models import utcnow
from app_utils.constants import ComplaintStatus, NotificationType
from database import SessionLocal
from services import notification_service
import crud

logger = logging.getLogger(__name__)

_sweep_lock = threading.Lock()


@dataclass
class EscalationResult:
    found: int = 0
    escalated: int = 0
    failed: int = 0
    skipped: bool = False


def _notify_escalation(db: Session, complaint):
    notification_service.create_notification(
        db,
        complaint.owner,
        f"Your complaint '{complaint.title}' has been escalated due to exceeding the resolution timeframe",
        NotificationType.STATUS_CHANGE,
        complaint,
    )
    if complaint.assignee is not None:
        notification_service.create_notification(
            db,
            complaint.assignee,
            f"Complaint '{complaint.title}' assigned to you has been escalated due to exceeding "
            f"the resolution timeframe",
            NotificationType.STATUS_CHANGE,
            complaint,
        )
    notification_service.notify_admins(
        db,
        f"Complaint #{complaint.id} '{complaint.title}' has been automatically escalated "
        f"due to exceeding the resolution timeframe",
        NotificationType.STATUS_CHANGE,
        complaint,
    )


def escalate_overdue_complaints(db: Session, now=None) -> EscalationResult:
    now = now or utcnow()
    overdue = crud.find_overdue_complaints(db, now)
    result = EscalationResult(found=len(overdue))
    logger.info(f"Escalation sweep found {result.found} overdue complaints")

    for complaint in overdue:
        complaint_id = complaint.id
        try:
            complaint.escalated = True
            complaint.status = ComplaintStatus.ESCALATED
            complaint.updated_at = now
            crud.add_complaint_update(
                db,
                complaint,
                "Complaint automatically escalated due to exceeding resolution timeframe",
                status=ComplaintStatus.ESCALATED,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            result.failed += 1
            logger.exception(f"Failed to escalate complaint {complaint_id}")
            continue

        result.escalated += 1
        try:
            _notify_escalation(db, complaint)
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Escalated complaint {complaint_id} but failed to notify")

    logger.info(
        f"Escalation sweep done: escalated {result.escalated}, failed {result.failed} "
        f"of {result.found}"
    )
    return result


def run_escalation_sweep(now=None) -> EscalationResult:
    """One sweep on a fresh session; overlapping calls are skipped."""
    if not _sweep_lock.acquire(blocking=False):
        logger.warning("Escalation sweep already running, skipping")
        return EscalationResult(skipped=True)
    try:
        db = SessionLocal()
        try:
            return escalate_overdue_complaints(db, now)
        finally:
            db.close()
    finally:
        _sweep_lock.release()


async def escalation_loop(interval):
    logger.info(f"Escalation loop started (every {interval}s)")
    while True:
        try:
            await run_in_threadpool(run_escalation_sweep)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Escalation sweep crashed")
        await asyncio.sleep(interval)
