from datetime import datetime
import re
from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app_utils.constants import ComplaintStatus, UserRole, NotificationType

T = TypeVar("T")

PHONE_PATTERN = r"^0?\d{10}$"
PASSWORD_PATTERN = re.compile(r"^(?=.*[0-9])(?=.*[a-z])(?=.*[A-Z])(?=.*[@#$%^&+=!])(?=\S+$).{6,}$")


# ---------- Users / Auth ----------
class UserCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN)
    password: str = Field(..., min_length=6)
    role: Optional[str] = None

    @field_validator("password")
    @classmethod
    def password_strength(cls, value):
        if not PASSWORD_PATTERN.match(value):
            raise ValueError(
                "Password must contain at least one digit, one lowercase letter, one uppercase letter, "
                "one special character, and no whitespace"
            )
        return value


class UserLogin(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    token: str
    type: str = "Bearer"
    expires_in: int
    refresh_token: str
    user: UserResponse


class UpdateProfileRequest(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


# ---------- Complaints ----------
class ComplaintCreate(BaseModel):
    title: str = Field(..., min_length=10, max_length=100)
    description: str = Field(..., min_length=20)
    category: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(None, min_length=10)

    @field_validator("category")
    @classmethod
    def category_not_blank(cls, value):
        if not value.strip():
            raise ValueError("Category is required")
        return value.strip()


class ComplaintResponse(BaseModel):
    id: int
    user_id: int
    user_full_name: Optional[str] = None
    title: str
    description: str
    category: str
    latitude: float
    longitude: float
    address: Optional[str] = None
    status: ComplaintStatus
    assigned_to_id: Optional[int] = None
    assigned_to_name: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    due_date: datetime
    escalated: bool
    is_duplicate: bool
    original_complaint_id: Optional[int] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    reopened: bool
    reopen_reason: Optional[str] = None

    @classmethod
    def from_complaint(cls, complaint):
        return cls(
            id=complaint.id,
            user_id=complaint.user_id,
            user_full_name=complaint.owner.name if complaint.owner else None,
            title=complaint.title,
            description=complaint.description,
            category=complaint.category,
            latitude=complaint.latitude,
            longitude=complaint.longitude,
            address=complaint.address,
            status=complaint.status,
            assigned_to_id=complaint.assigned_to,
            assigned_to_name=complaint.assignee.name if complaint.assignee else None,
            created_at=complaint.created_at,
            updated_at=complaint.updated_at,
            due_date=complaint.due_date,
            escalated=bool(complaint.escalated),
            is_duplicate=bool(complaint.is_duplicate),
            original_complaint_id=complaint.original_complaint_id,
            rating=complaint.rating,
            feedback=complaint.feedback,
            reopened=bool(complaint.reopened),
            reopen_reason=complaint.reopen_reason,
        )


class ComplaintMapResponse(BaseModel):
    id: int
    latitude: float
    longitude: float
    category: str
    status: ComplaintStatus
    title: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ComplaintUpdateResponse(BaseModel):
    id: int
    complaint_id: int
    updated_by: Optional[int] = None
    updated_by_name: Optional[str] = None
    status: Optional[ComplaintStatus] = None
    comment: str
    created_at: datetime

    @classmethod
    def from_update(cls, update):
        return cls(
            id=update.id,
            complaint_id=update.complaint_id,
            updated_by=update.updated_by,
            updated_by_name=update.author.name if update.author else "System",
            status=update.status,
            comment=update.comment,
            created_at=update.created_at,
        )


class UpdateStatusRequest(BaseModel):
    status: str
    comment: str = Field(..., min_length=1)

    @field_validator("comment")
    @classmethod
    def comment_not_blank(cls, value):
        if not value.strip():
            raise ValueError("Comment is required")
        return value


class AssignRequest(BaseModel):
    assignee_id: int
    comment: Optional[str] = None


class CommentRequest(BaseModel):
    text: str = Field(..., min_length=1)


class FeedbackRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = None


class ReopenRequest(BaseModel):
    reopen_reason: str = Field(..., min_length=1)


class DuplicateComplaintResponse(BaseModel):
    original_complaint: ComplaintResponse
    duplicate_complaints: List[ComplaintResponse]
    total_duplicates: int


class TopArea(BaseModel):
    lat: float
    lng: float
    count: int


class StatisticsResponse(BaseModel):
    total_complaints: int
    pending_complaints: int
    in_progress_complaints: int
    resolved_complaints: int
    rejected_complaints: int
    complaints_by_category: Dict[str, int]
    complaints_by_status: Dict[str, int]
    top_areas: List[TopArea]


# ---------- Notifications ----------
class NotificationResponse(BaseModel):
    id: int
    user_id: int
    complaint_id: Optional[int] = None
    complaint_title: Optional[str] = None
    message: str
    sent_at: datetime
    is_read: bool
    type: NotificationType

    @classmethod
    def from_notification(cls, notification):
        return cls(
            id=notification.id,
            user_id=notification.user_id,
            complaint_id=notification.complaint_id,
            complaint_title=notification.complaint.title if notification.complaint else None,
            message=notification.message,
            sent_at=notification.sent_at,
            is_read=bool(notification.is_read),
            type=notification.type,
        )


class UnreadCountResponse(BaseModel):
    count: int


# ---------- Generic ----------
class Page(BaseModel, Generic[T]):
    content: List[T]
    page: int
    size: int
    total_elements: int
    total_pages: int


class MessageResponse(BaseModel):
    status: str
    message: str


class EscalationRunResponse(BaseModel):
    found: int
    escalated: int
    failed: int
    skipped: bool


def build_page(item_cls, content, page, size, total):
    return Page[item_cls](
        content=content,
        page=page,
        size=size,
        total_elements=total,
        total_pages=(total + size - 1) // size if size else 0,
    )
