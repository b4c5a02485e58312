import logging
from collections import Counter
from datetime import timezone
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from app_models import Complaint, User, utcnow
from app_utils.constants import (
    ComplaintStatus,
    NotificationType,
    STAFF_ROLES,
    MAX_RATING_FOR_REOPEN,
    MIN_RATING,
    MAX_RATING,
    HOTSPOT_GRID_DECIMALS,
    HOTSPOT_LIMIT,
    COMPLAINT_SORT_FIELDS,
    parse_enum,
)
from app_utils.deduplication import check_duplicate_complaint
from app_utils.exceptions import NotFoundError, ForbiddenError, InvalidStateError, InvalidInputError
from app_utils.geo import reverse_geocode, within_bounding_box
from config import DUPLICATE_DETECTION_ENABLED, MAX_IMAGE_BYTES
from schemas import ComplaintCreate, ComplaintResponse, StatisticsResponse, TopArea, build_page
from services import notification_service, duplicate_service
import crud

logger = logging.getLogger(__name__)

# (bytes, content_type, file_name)
ImageUpload = Tuple[bytes, str, str]


def _require_staff(actor: User, action: str):
    if actor.role not in STAFF_ROLES:
        raise ForbiddenError(f"Only staff or admins can {action}")


def _get_or_404(db: Session, complaint_id: int) -> Complaint:
    complaint = crud.get_complaint(db, complaint_id)
    if complaint is None:
        raise NotFoundError(f"Complaint not found with id: {complaint_id}")
    return complaint


def _validate_images(images: Optional[List[ImageUpload]]):
    valid = []
    for image_bytes, content_type, file_name in images or []:
        if not image_bytes:
            continue
        if not content_type or not content_type.startswith("image/"):
            raise InvalidInputError(f"File '{file_name}' is not an image")
        if len(image_bytes) > MAX_IMAGE_BYTES:
            raise InvalidInputError(f"File '{file_name}' exceeds the maximum image size")
        valid.append((image_bytes, content_type, file_name))
    return valid


# -------------------------------------------------------------------
# Create
# -------------------------------------------------------------------
def create_complaint(db: Session, actor: User, data: ComplaintCreate,
                     images: Optional[List[ImageUpload]] = None) -> Complaint:
    """
    Save a new complaint with its images and an initial "Created" update.
    Fills in the address by reverse geocoding when none was given, then runs
    duplicate detection against recent complaints of the same category.
    """
    uploads = _validate_images(images)

    address = data.address
    if not address:
        address = reverse_geocode(data.latitude, data.longitude)

    submitted_at = utcnow()
    original = None
    if DUPLICATE_DETECTION_ENABLED:
        original = check_duplicate_complaint(
            db, data.category, data.latitude, data.longitude, submitted_at
        )

    complaint = Complaint(
        owner=actor,
        title=data.title,
        description=data.description,
        category=data.category,
        latitude=data.latitude,
        longitude=data.longitude,
        address=address,
        status=ComplaintStatus.SUBMITTED,
        created_at=submitted_at,
        updated_at=submitted_at,
    )
    db.add(complaint)

    for image_bytes, content_type, file_name in uploads:
        crud.add_image(db, complaint, image_bytes, content_type, file_name)

    crud.add_complaint_update(db, complaint, "Created", user=actor, status=ComplaintStatus.SUBMITTED)
    db.commit()
    db.refresh(complaint)
    logger.info(f"Complaint {complaint.id} created by user {actor.id} ({complaint.category}, {len(uploads)} images)")

    if original is not None:
        duplicate_service.mark_as_duplicate(db, complaint, original)

    return complaint


# -------------------------------------------------------------------
# Triage
# -------------------------------------------------------------------
def update_status(db: Session, actor: User, complaint_id: int, status, comment: str) -> Complaint:
    _require_staff(actor, "update complaint status")
    complaint = _get_or_404(db, complaint_id)
    new_status = parse_enum(ComplaintStatus, status, "status")
    if not comment or not comment.strip():
        raise InvalidInputError("Comment is required")

    previous = complaint.status
    complaint.status = new_status
    complaint.escalated = new_status == ComplaintStatus.ESCALATED
    complaint.updated_at = utcnow()
    crud.add_complaint_update(db, complaint, comment, user=actor, status=new_status)
    db.commit()
    db.refresh(complaint)
    logger.info(f"Complaint {complaint.id} status {previous.value} -> {new_status.value} by user {actor.id}")

    notification_service.send_status_change_notification(db, complaint)
    return complaint


def assign_complaint(db: Session, actor: User, complaint_id: int, assignee_id: int,
                     comment: Optional[str] = None) -> Complaint:
    _require_staff(actor, "assign complaints")
    complaint = _get_or_404(db, complaint_id)
    assignee = crud.get_user(db, assignee_id)
    if assignee is None:
        raise NotFoundError(f"User not found with id: {assignee_id}")
    if assignee.role not in STAFF_ROLES:
        raise InvalidInputError("Complaints can only be assigned to staff or admins")

    complaint.assignee = assignee
    complaint.updated_at = utcnow()
    crud.add_complaint_update(
        db,
        complaint,
        comment or f"Assigned to {assignee.name}",
        user=actor,
        status=complaint.status,
    )
    db.commit()
    db.refresh(complaint)
    logger.info(f"Complaint {complaint.id} assigned to user {assignee.id} by user {actor.id}")

    notification_service.create_notification(
        db,
        assignee,
        f"Complaint '{complaint.title}' has been assigned to you",
        NotificationType.ASSIGNMENT,
        complaint,
    )
    return complaint


def add_comment(db: Session, actor: User, complaint_id: int, text: str) -> Complaint:
    complaint = _get_or_404(db, complaint_id)
    if not text or not text.strip():
        raise InvalidInputError("Comment text is required")

    crud.add_complaint_update(db, complaint, text, user=actor, status=complaint.status)
    db.commit()
    db.refresh(complaint)

    notification_service.send_comment_notification(db, complaint, actor, text)
    return complaint


# -------------------------------------------------------------------
# Citizen feedback
# -------------------------------------------------------------------
def add_feedback(db: Session, actor: User, complaint_id: int, rating: int,
                 feedback: Optional[str] = None) -> Complaint:
    complaint = _get_or_404(db, complaint_id)
    if complaint.user_id != actor.id:
        raise ForbiddenError("You can only provide feedback for your own complaints")
    if complaint.status != ComplaintStatus.RESOLVED:
        raise InvalidStateError("Feedback can only be provided for resolved complaints")
    if rating is None or not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidInputError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")

    complaint.rating = rating
    complaint.feedback = feedback
    complaint.updated_at = utcnow()
    crud.add_complaint_update(
        db,
        complaint,
        f"Citizen rated the resolution {rating}/{MAX_RATING}" + (f": {feedback}" if feedback else ""),
        user=actor,
        status=complaint.status,
    )
    db.commit()
    db.refresh(complaint)

    if complaint.assignee is not None:
        notification_service.create_notification(
            db,
            complaint.assignee,
            f"Complaint '{complaint.title}' received a rating of {rating}/{MAX_RATING}",
            NotificationType.INFO,
            complaint,
        )
    return complaint


def reopen_complaint(db: Session, actor: User, complaint_id: int, reason: str) -> Complaint:
    complaint = _get_or_404(db, complaint_id)
    if complaint.user_id != actor.id:
        raise ForbiddenError("You can only reopen your own complaints")
    if complaint.status != ComplaintStatus.RESOLVED:
        raise InvalidStateError("Only resolved complaints can be reopened")
    if complaint.rating is not None and complaint.rating > MAX_RATING_FOR_REOPEN:
        raise InvalidStateError(
            f"Only complaints rated {MAX_RATING_FOR_REOPEN} or below can be reopened"
        )
    if not reason or not reason.strip():
        raise InvalidInputError("Reopen reason is required")

    complaint.status = ComplaintStatus.IN_PROGRESS
    complaint.escalated = False
    complaint.reopened = True
    complaint.reopen_reason = reason
    complaint.updated_at = utcnow()
    crud.add_complaint_update(
        db, complaint, f"Complaint reopened: {reason}", user=actor, status=ComplaintStatus.IN_PROGRESS
    )
    db.commit()
    db.refresh(complaint)
    logger.info(f"Complaint {complaint.id} reopened by user {actor.id}")

    message = f"Complaint '{complaint.title}' has been reopened by the citizen: {reason}"
    notified = set()
    if complaint.assignee is not None:
        notification_service.create_notification(
            db, complaint.assignee, message, NotificationType.STATUS_CHANGE, complaint
        )
        notified.add(complaint.assignee.id)
    notification_service.notify_admins(
        db, message, NotificationType.STATUS_CHANGE, complaint, exclude_user_ids=notified
    )
    return complaint


# -------------------------------------------------------------------
# Reads
# -------------------------------------------------------------------
def get_complaint(db: Session, complaint_id: int) -> Complaint:
    return _get_or_404(db, complaint_id)


def _page(items, page, size, total):
    return build_page(ComplaintResponse, [ComplaintResponse.from_complaint(c) for c in items], page, size, total)


def list_complaints(db: Session, page: int, size: int, sort_by: str = "createdAt", direction: str = "desc"):
    column_name = COMPLAINT_SORT_FIELDS.get(sort_by)
    if column_name is None:
        raise InvalidInputError(f"Invalid sort field: {sort_by}")
    column = getattr(Complaint, column_name)
    order = column.asc() if (direction or "").lower() == "asc" else column.desc()

    query = crud.complaints_query(db).order_by(order, Complaint.id.desc())
    items, total = crud.paginate(query, page, size)
    return _page(items, page, size, total)


def list_user_complaints(db: Session, user: User, page: int, size: int):
    items, total = crud.paginate(crud.complaints_by_owner(db, user.id), page, size)
    return _page(items, page, size, total)


def list_by_category(db: Session, category: str, page: int, size: int):
    items, total = crud.paginate(crud.complaints_by_category(db, category), page, size)
    return _page(items, page, size, total)


def list_by_status(db: Session, status, page: int, size: int):
    parsed = parse_enum(ComplaintStatus, status, "status")
    items, total = crud.paginate(crud.complaints_by_status(db, parsed), page, size)
    return _page(items, page, size, total)


def list_escalated(db: Session, page: int, size: int):
    return list_by_status(db, ComplaintStatus.ESCALATED, page, size)


def list_by_rating_range(db: Session, min_rating: int, max_rating: int, page: int, size: int):
    if min_rating > max_rating:
        raise InvalidInputError("min_rating must not exceed max_rating")
    items, total = crud.paginate(crud.complaints_by_rating_range(db, min_rating, max_rating), page, size)
    return _page(items, page, size, total)


def get_updates(db: Session, complaint_id: int):
    _get_or_404(db, complaint_id)
    return crud.get_complaint_updates(db, complaint_id)


def get_image_ids(db: Session, complaint_id: int) -> List[int]:
    _get_or_404(db, complaint_id)
    return crud.get_image_ids(db, complaint_id)


def get_image(db: Session, image_id: int):
    image = crud.get_image(db, image_id)
    if image is None:
        raise NotFoundError(f"Image not found with id: {image_id}")
    return image


# -------------------------------------------------------------------
# Statistics / map
# -------------------------------------------------------------------
def _as_naive_utc(value):
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def get_statistics(db: Session) -> StatisticsResponse:
    by_status = {status.value: 0 for status in ComplaintStatus}
    for status, count in crud.count_by_status(db).items():
        by_status[status.value] = count

    # Spatial histogram over a rounded coordinate grid
    grid = Counter(
        (round(lat, HOTSPOT_GRID_DECIMALS), round(lng, HOTSPOT_GRID_DECIMALS))
        for lat, lng in crud.all_coordinates(db)
    )
    top_areas = [
        TopArea(lat=lat, lng=lng, count=count)
        for (lat, lng), count in grid.most_common(HOTSPOT_LIMIT)
    ]

    return StatisticsResponse(
        total_complaints=crud.count_complaints(db),
        pending_complaints=by_status[ComplaintStatus.SUBMITTED.value],
        in_progress_complaints=by_status[ComplaintStatus.IN_PROGRESS.value],
        resolved_complaints=by_status[ComplaintStatus.RESOLVED.value],
        rejected_complaints=by_status[ComplaintStatus.ESCALATED.value],
        complaints_by_category=crud.count_by_category(db),
        complaints_by_status=by_status,
        top_areas=top_areas,
    )


def get_map_data(db: Session, min_lat=None, max_lat=None, min_lng=None, max_lng=None,
                 category=None, status=None, start_date=None, end_date=None) -> List[Complaint]:
    start_date = _as_naive_utc(start_date)
    end_date = _as_naive_utc(end_date)
    parsed_status = parse_enum(ComplaintStatus, status, "status") if status else None
    category = category.strip().lower() if category else None

    results = []
    for complaint in crud.complaints_query(db).order_by(Complaint.id).all():
        if not within_bounding_box(complaint.latitude, complaint.longitude, min_lat, max_lat, min_lng, max_lng):
            continue
        if category and complaint.category.lower() != category:
            continue
        if parsed_status and complaint.status != parsed_status:
            continue
        if start_date and complaint.created_at < start_date:
            continue
        if end_date and complaint.created_at > end_date:
            continue
        results.append(complaint)
    return results
