from sqlalchemy import func

from app_models import Complaint, ComplaintUpdate, ComplaintImage, User, Notification
from app_utils.constants import ComplaintStatus, UserRole


# ---------- Paging ----------
def paginate(query, page, size):
    """
    Apply 0-based page/size to a query.
    Returns (items, total).
    """
    total = query.order_by(None).count()
    items = query.offset(page * size).limit(size).all()
    return items, total


# ---------- User ----------
def get_user(db, user_id):
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db, email):
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def get_users_by_role(db, role):
    return db.query(User).filter(User.role == role).order_by(User.id).all()


def create_user(db, name, email, hashed_password, phone=None, role=UserRole.CITIZEN):
    user = User(
        name=name,
        email=email.strip().lower(),
        phone=phone,
        hashed_password=hashed_password,
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


# ---------- Complaint ----------
def get_complaint(db, complaint_id):
    return db.query(Complaint).filter(Complaint.id == complaint_id).first()


def complaints_query(db):
    return db.query(Complaint)


def complaints_by_owner(db, user_id):
    return db.query(Complaint).filter(Complaint.user_id == user_id).order_by(Complaint.created_at.desc())


def complaints_by_category(db, category):
    return db.query(Complaint).filter(Complaint.category == category).order_by(Complaint.created_at.desc())


def complaints_by_status(db, status):
    return db.query(Complaint).filter(Complaint.status == status).order_by(Complaint.created_at.desc())


def complaints_by_rating_range(db, min_rating, max_rating):
    return (
        db.query(Complaint)
        .filter(
            Complaint.rating.isnot(None),
            Complaint.rating >= min_rating,
            Complaint.rating <= max_rating,
            Complaint.status == ComplaintStatus.RESOLVED,
        )
        .order_by(Complaint.created_at.desc())
    )


def count_complaints(db):
    return db.query(func.count(Complaint.id)).scalar() or 0


def count_by_status(db):
    rows = db.query(Complaint.status, func.count(Complaint.id)).group_by(Complaint.status).all()
    return {status: count for status, count in rows}


def count_by_category(db):
    rows = db.query(Complaint.category, func.count(Complaint.id)).group_by(Complaint.category).all()
    return {category: count for category, count in rows}


def all_coordinates(db):
    return db.query(Complaint.latitude, Complaint.longitude).all()


def find_overdue_complaints(db, now):
    """Unresolved, not yet escalated complaints whose due date has passed."""
    return (
        db.query(Complaint)
        .filter(
            Complaint.status != ComplaintStatus.RESOLVED,
            Complaint.escalated.is_(False),
            Complaint.due_date < now,
        )
        .order_by(Complaint.due_date.asc(), Complaint.id.asc())
        .all()
    )


def find_duplicate_candidates(db, category, since, until):
    """
    Non-duplicate complaints of the same category created in (since, until],
    oldest first.
    """
    return (
        db.query(Complaint)
        .filter(
            Complaint.category == category,
            Complaint.is_duplicate.is_(False),
            Complaint.created_at > since,
            Complaint.created_at <= until,
        )
        .order_by(Complaint.created_at.asc(), Complaint.id.asc())
        .all()
    )


def find_duplicates_of(db, original_id):
    return (
        db.query(Complaint)
        .filter(Complaint.original_complaint_id == original_id)
        .order_by(Complaint.created_at.asc(), Complaint.id.asc())
        .all()
    )


# ---------- Complaint updates ----------
def add_complaint_update(db, complaint, comment, user=None, status=None):
    """Stage an audit row; the caller commits together with the complaint change."""
    update = ComplaintUpdate(
        complaint=complaint,
        author=user,
        status=status,
        comment=comment,
    )
    db.add(update)
    return update


def get_complaint_updates(db, complaint_id):
    return (
        db.query(ComplaintUpdate)
        .filter(ComplaintUpdate.complaint_id == complaint_id)
        .order_by(ComplaintUpdate.created_at.desc(), ComplaintUpdate.id.desc())
        .all()
    )


# ---------- Image ----------
def add_image(db, complaint, image_bytes, content_type, file_name):
    image = ComplaintImage(
        complaint=complaint,
        image_data=image_bytes,
        content_type=content_type,
        file_name=file_name,
    )
    db.add(image)
    return image


def get_image(db, image_id):
    return db.query(ComplaintImage).filter(ComplaintImage.id == image_id).first()


def get_image_ids(db, complaint_id):
    rows = (
        db.query(ComplaintImage.id)
        .filter(ComplaintImage.complaint_id == complaint_id)
        .order_by(ComplaintImage.id)
        .all()
    )
    return [row[0] for row in rows]


# ---------- Notification ----------
def get_notification(db, notification_id):
    return db.query(Notification).filter(Notification.id == notification_id).first()


def notifications_for_user(db, user_id):
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.sent_at.desc(), Notification.id.desc())
    )


def count_unread(db, user_id):
    return (
        db.query(func.count(Notification.id))
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .scalar()
        or 0
    )


def mark_all_read(db, user_id):
    count = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session="fetch")
    )
    db.commit()
    return count
