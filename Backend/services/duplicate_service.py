import logging

from sqlalchemy.orm import Session

from app_models import Complaint, User
from app_utils.constants import NotificationType, STAFF_ROLES
from app_utils.exceptions import NotFoundError, ForbiddenError, InvalidStateError
from schemas import ComplaintResponse, DuplicateComplaintResponse
from services import notification_service
import crud

logger = logging.getLogger(__name__)


def mark_as_duplicate(db: Session, complaint: Complaint, original: Complaint, actor: User = None):
    """Link `complaint` to its canonical `original` and tell the submitter and the admins."""
    complaint.is_duplicate = True
    complaint.original_complaint = original
    crud.add_complaint_update(
        db,
        complaint,
        f"Marked as duplicate of complaint #{original.id}",
        user=actor,
        status=complaint.status,
    )
    db.commit()
    db.refresh(complaint)
    logger.info(f"Complaint {complaint.id} marked as duplicate of {original.id}")

    if actor is None:
        message = (
            f"Your complaint '{complaint.title}' has been identified as a duplicate of an existing "
            f"complaint (#{original.id}) and will be handled together with it"
        )
    else:
        message = f"Your complaint '{complaint.title}' has been merged with another complaint (#{original.id})"

    notification_service.create_notification(
        db,
        complaint.owner,
        message,
        NotificationType.STATUS_CHANGE,
        complaint,
    )
    if actor is None:
        notification_service.notify_admins(
            db,
            f"Potential duplicate complaint detected: #{complaint.id} duplicates #{original.id} "
            f"({complaint.category})",
            NotificationType.INFO,
            complaint,
        )
    return complaint


def get_duplicates(db: Session, complaint_id: int) -> DuplicateComplaintResponse:
    original = crud.get_complaint(db, complaint_id)
    if original is None:
        raise NotFoundError(f"Complaint not found with id: {complaint_id}")

    duplicates = crud.find_duplicates_of(db, original.id)
    return DuplicateComplaintResponse(
        original_complaint=ComplaintResponse.from_complaint(original),
        duplicate_complaints=[ComplaintResponse.from_complaint(c) for c in duplicates],
        total_duplicates=len(duplicates),
    )


def merge_complaints(db: Session, actor: User, canonical_id: int, candidate_ids) -> DuplicateComplaintResponse:
    """
    Mark every candidate as a duplicate of the canonical complaint.

    All ids are resolved before anything is written, so an unknown id fails the
    whole batch. The canonical must not itself be a duplicate. Candidates already
    linked to the canonical are left alone; duplicates of a merged candidate are
    moved onto the canonical so the set stays one level deep.
    """
    if actor.role not in STAFF_ROLES:
        raise ForbiddenError("Only staff or admins can merge complaints")

    canonical = crud.get_complaint(db, canonical_id)
    if canonical is None:
        raise NotFoundError(f"Complaint not found with id: {canonical_id}")
    if canonical.is_duplicate:
        raise InvalidStateError(
            f"Complaint #{canonical.id} is a duplicate of #{canonical.original_complaint_id} and cannot be a merge target"
        )

    candidates = []
    seen = set()
    for candidate_id in candidate_ids:
        if candidate_id == canonical_id or candidate_id in seen:
            continue
        seen.add(candidate_id)
        candidate = crud.get_complaint(db, candidate_id)
        if candidate is None:
            raise NotFoundError(f"Complaint not found with id: {candidate_id}")
        candidates.append(candidate)

    merged = 0
    for candidate in candidates:
        if candidate.is_duplicate and candidate.original_complaint_id == canonical.id:
            continue
        for child in crud.find_duplicates_of(db, candidate.id):
            child.original_complaint = canonical
            crud.add_complaint_update(
                db,
                child,
                f"Re-linked to complaint #{canonical.id} after #{candidate.id} was merged into it",
                user=actor,
                status=child.status,
            )
        mark_as_duplicate(db, candidate, canonical, actor=actor)
        merged += 1

    logger.info(f"Merged {merged} of {len(candidates)} complaints into {canonical.id} by user {actor.id}")
    return get_duplicates(db, canonical.id)
