from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, Integer, String, Float, Boolean, LargeBinary, ForeignKey, DateTime, Text, Enum
from sqlalchemy.orm import relationship

from app_utils.constants import ComplaintStatus, UserRole, NotificationType
from config import COMPLAINT_SLA_HOURS
from database import Base


def utcnow():
    """Naive UTC timestamp; every datetime column is stored as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _default_due_date(context):
    created_at = context.get_current_parameters().get("created_at") or utcnow()
    return created_at + timedelta(hours=COMPLAINT_SLA_HOURS)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    role = Column(Enum(UserRole, native_enum=False, length=16), nullable=False, default=UserRole.CITIZEN)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    complaints = relationship(
        "Complaint", foreign_keys="Complaint.user_id", back_populates="owner"
    )


class Complaint(Base):
    __tablename__ = "complaints"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # Owner (citizen who raised it)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False, index=True)

    latitude = Column(Float, nullable=False, index=True)
    longitude = Column(Float, nullable=False, index=True)
    address = Column(String, nullable=True)

    status = Column(
        Enum(ComplaintStatus, native_enum=False, length=16),
        nullable=False,
        default=ComplaintStatus.SUBMITTED,
        index=True,
    )
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True)  # Staff member handling it

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    due_date = Column(DateTime, default=_default_due_date, nullable=False, index=True)
    escalated = Column(Boolean, default=False, nullable=False)

    # Duplicate detection
    is_duplicate = Column(Boolean, default=False, nullable=False)
    original_complaint_id = Column(Integer, ForeignKey("complaints.id"), nullable=True, index=True)

    # Citizen feedback
    rating = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
    reopened = Column(Boolean, default=False, nullable=False)
    reopen_reason = Column(Text, nullable=True)

    owner = relationship("User", foreign_keys=[user_id], back_populates="complaints")
    assignee = relationship("User", foreign_keys=[assigned_to])
    original_complaint = relationship(
        "Complaint", remote_side=[id], foreign_keys=[original_complaint_id], back_populates="duplicates"
    )
    duplicates = relationship(
        "Complaint", foreign_keys=[original_complaint_id], back_populates="original_complaint"
    )
    updates = relationship(
        "ComplaintUpdate",
        back_populates="complaint",
        cascade="all, delete-orphan",
        order_by="ComplaintUpdate.id",
    )
    images = relationship(
        "ComplaintImage",
        back_populates="complaint",
        cascade="all, delete-orphan",
        order_by="ComplaintImage.id",
    )


class ComplaintUpdate(Base):
    """Append-only audit trail row: one per status change, comment or citizen action."""
    __tablename__ = "complaint_updates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    complaint_id = Column(Integer, ForeignKey("complaints.id"), nullable=False, index=True)
    updated_by = Column(Integer, ForeignKey("users.id"), nullable=True)  # NULL for system actions
    status = Column(Enum(ComplaintStatus, native_enum=False, length=16), nullable=True)
    comment = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    complaint = relationship("Complaint", back_populates="updates")
    author = relationship("User")


class ComplaintImage(Base):
    __tablename__ = "complaint_images"

    id = Column(Integer, primary_key=True, autoincrement=True)
    complaint_id = Column(Integer, ForeignKey("complaints.id"), nullable=False, index=True)

    image_data = Column(LargeBinary, nullable=False)
    content_type = Column(String, nullable=False)
    file_name = Column(String, nullable=False)

    # Timestamp - when image was uploaded
    created_at = Column(DateTime, default=utcnow, nullable=False)

    complaint = relationship("Complaint", back_populates="images")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)  # Recipient
    complaint_id = Column(Integer, ForeignKey("complaints.id", ondelete="SET NULL"), nullable=True)

    message = Column(Text, nullable=False)
    type = Column(Enum(NotificationType, native_enum=False, length=16), nullable=False, default=NotificationType.INFO)
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    sent_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    recipient = relationship("User")
    complaint = relationship("Complaint")
