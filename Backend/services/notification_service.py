import logging

from sqlalchemy.orm import Session

from app_models import Notification, Complaint, User
from app_utils.constants import NotificationType, UserRole
from app_utils.exceptions import NotFoundError, ForbiddenError
from schemas import NotificationResponse, Page, build_page
from services.push_channels import connection_manager
import crud

logger = logging.getLogger(__name__)

NOTIFICATION_EVENT = "NOTIFICATION"
INIT_EVENT = "INIT"
COMMENT_PREVIEW_LENGTH = 30


def create_notification(db: Session, recipient: User, message: str,
                        type: NotificationType = NotificationType.INFO,
                        complaint: Complaint = None) -> Notification:
    """Persist a notification, then push it to the recipient if connected."""
    notification = Notification(
        user_id=recipient.id,
        complaint_id=complaint.id if complaint is not None else None,
        message=message,
        type=type,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)

    payload = NotificationResponse.from_notification(notification).model_dump(mode="json")
    if connection_manager.send(recipient.id, NOTIFICATION_EVENT, payload):
        logger.debug(f"Pushed notification {notification.id} to user {recipient.id}")
    return notification


def notify_admins(db: Session, message: str, type: NotificationType = NotificationType.INFO,
                  complaint: Complaint = None, exclude_user_ids=()):
    sent = []
    for admin in crud.get_users_by_role(db, UserRole.ADMIN):
        if admin.id in exclude_user_ids:
            continue
        sent.append(create_notification(db, admin, message, type, complaint))
    return sent


def send_status_change_notification(db: Session, complaint: Complaint):
    status = complaint.status.value
    create_notification(
        db,
        complaint.owner,
        f"Your complaint '{complaint.title}' status has been updated to {status}",
        NotificationType.STATUS_CHANGE,
        complaint,
    )
    if complaint.assignee is not None and complaint.assigned_to != complaint.user_id:
        create_notification(
            db,
            complaint.assignee,
            f"Complaint '{complaint.title}' assigned to you has been updated to {status}",
            NotificationType.STATUS_CHANGE,
            complaint,
        )


def _preview(text):
    if len(text) > COMMENT_PREVIEW_LENGTH:
        return text[:COMMENT_PREVIEW_LENGTH - 3] + "..."
    return text


def send_comment_notification(db: Session, complaint: Complaint, commenter: User, comment: str):
    preview = _preview(comment)
    if complaint.user_id != commenter.id:
        create_notification(
            db,
            complaint.owner,
            f"New comment on your complaint '{complaint.title}': {preview}",
            NotificationType.COMMENT,
            complaint,
        )
    if (complaint.assignee is not None
            and complaint.assigned_to != commenter.id
            and complaint.assigned_to != complaint.user_id):
        create_notification(
            db,
            complaint.assignee,
            f"New comment on assigned complaint '{complaint.title}': {preview}",
            NotificationType.COMMENT,
            complaint,
        )


# ---------- Read state ----------
def list_notifications(db: Session, user: User, page: int, size: int) -> Page[NotificationResponse]:
    items, total = crud.paginate(crud.notifications_for_user(db, user.id), page, size)
    return build_page(NotificationResponse, [NotificationResponse.from_notification(n) for n in items], page, size, total)


def count_unread(db: Session, user: User) -> int:
    return crud.count_unread(db, user.id)


def mark_as_read(db: Session, user: User, notification_id: int) -> Notification:
    notification = crud.get_notification(db, notification_id)
    if notification is None:
        raise NotFoundError(f"Notification not found with id: {notification_id}")
    if notification.user_id != user.id:
        raise ForbiddenError("You do not have permission to modify this notification")
    if not notification.is_read:
        notification.is_read = True
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_as_read(db: Session, user: User) -> int:
    count = crud.mark_all_read(db, user.id)
    logger.info(f"Marked {count} notifications read for user {user.id}")
    return count
