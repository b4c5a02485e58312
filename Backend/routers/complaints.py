from typing import List, Optional

from fastapi import APIRouter, Body, Depends, File, Form, Query, Response, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from database import get_db
from app_models import User
from app_utils.constants import UserRole, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from routers.deps import get_current_user, require_roles
from schemas import (
    ComplaintCreate,
    ComplaintResponse,
    ComplaintUpdateResponse,
    UpdateStatusRequest,
    AssignRequest,
    CommentRequest,
    FeedbackRequest,
    ReopenRequest,
    DuplicateComplaintResponse,
    StatisticsResponse,
    Page,
)
from services import complaint_service, duplicate_service

router = APIRouter(prefix="/api/complaints", tags=["Complaints"])

staff_only = require_roles(UserRole.STAFF, UserRole.ADMIN)


# ==================================================
# CREATE (multipart: form fields + optional images)
# ==================================================
@router.post("/create", response_model=ComplaintResponse, status_code=status.HTTP_201_CREATED)
async def create_complaint(
    title: str = Form(...),
    description: str = Form(...),
    category: str = Form(...),
    latitude: float = Form(...),
    longitude: float = Form(...),
    address: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        data = ComplaintCreate(
            title=title,
            description=description,
            category=category,
            latitude=latitude,
            longitude=longitude,
            address=address or None,
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))

    uploads = []
    for file in images or []:
        uploads.append((await file.read(), file.content_type, file.filename))

    complaint = complaint_service.create_complaint(db, current_user, data, uploads)
    return ComplaintResponse.from_complaint(complaint)


# ==================================================
# LISTINGS
# ==================================================
@router.get("/", response_model=Page[ComplaintResponse])
def list_complaints(
    page: int = Query(0, ge=0),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    sort_by: str = Query("createdAt", alias="sortBy"),
    direction: str = Query("desc"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return complaint_service.list_complaints(db, page, size, sort_by, direction)


@router.get("/my", response_model=Page[ComplaintResponse])
def my_complaints(
    page: int = Query(0, ge=0),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return complaint_service.list_user_complaints(db, current_user, page, size)


@router.get("/public/recent", response_model=Page[ComplaintResponse])
def recent_public_complaints(
    page: int = Query(0, ge=0),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    return complaint_service.list_complaints(db, page, size, "createdAt", "desc")


@router.get("/statistics", response_model=StatisticsResponse)
def statistics(current_user: User = Depends(staff_only), db: Session = Depends(get_db)):
    return complaint_service.get_statistics(db)


@router.get("/ratings", response_model=Page[ComplaintResponse])
def complaints_by_rating(
    min_rating: int = Query(0, alias="minRating"),
    max_rating: int = Query(5, alias="maxRating"),
    page: int = Query(0, ge=0),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return complaint_service.list_by_rating_range(db, min_rating, max_rating, page, size)


@router.get("/category/{category}", response_model=Page[ComplaintResponse])
def complaints_by_category(
    category: str,
    page: int = Query(0, ge=0),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return complaint_service.list_by_category(db, category, page, size)


@router.get("/status/{complaint_status}", response_model=Page[ComplaintResponse])
def complaints_by_status(
    complaint_status: str,
    page: int = Query(0, ge=0),
    size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return complaint_service.list_by_status(db, complaint_status, page, size)


@router.get("/images/{image_id}")
def get_image(image_id: int, db: Session = Depends(get_db)):
    image = complaint_service.get_image(db, image_id)
    return Response(
        content=image.image_data,
        media_type=image.content_type,
        headers={"Content-Disposition": f'inline; filename="{image.file_name}"'},
    )


# ==================================================
# SINGLE COMPLAINT
# ==================================================
@router.get("/{complaint_id}", response_model=ComplaintResponse)
def get_complaint(
    complaint_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ComplaintResponse.from_complaint(complaint_service.get_complaint(db, complaint_id))


@router.get("/{complaint_id}/images", response_model=List[int])
def get_complaint_image_ids(complaint_id: int, db: Session = Depends(get_db)):
    return complaint_service.get_image_ids(db, complaint_id)


@router.get("/{complaint_id}/updates", response_model=List[ComplaintUpdateResponse])
def get_complaint_updates(
    complaint_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [ComplaintUpdateResponse.from_update(u) for u in complaint_service.get_updates(db, complaint_id)]


@router.post("/{complaint_id}/status", response_model=ComplaintResponse)
def update_status(
    complaint_id: int,
    request: UpdateStatusRequest,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    complaint = complaint_service.update_status(db, current_user, complaint_id, request.status, request.comment)
    return ComplaintResponse.from_complaint(complaint)


@router.post("/{complaint_id}/assign", response_model=ComplaintResponse)
def assign_complaint(
    complaint_id: int,
    request: AssignRequest,
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    complaint = complaint_service.assign_complaint(
        db, current_user, complaint_id, request.assignee_id, request.comment
    )
    return ComplaintResponse.from_complaint(complaint)


@router.post("/{complaint_id}/comments", response_model=ComplaintResponse)
def add_comment(
    complaint_id: int,
    request: CommentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    complaint = complaint_service.add_comment(db, current_user, complaint_id, request.text)
    return ComplaintResponse.from_complaint(complaint)


@router.post("/{complaint_id}/feedback", response_model=ComplaintResponse)
def add_feedback(
    complaint_id: int,
    request: FeedbackRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    complaint = complaint_service.add_feedback(db, current_user, complaint_id, request.rating, request.feedback)
    return ComplaintResponse.from_complaint(complaint)


@router.post("/{complaint_id}/reopen", response_model=ComplaintResponse)
def reopen_complaint(
    complaint_id: int,
    request: ReopenRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    complaint = complaint_service.reopen_complaint(db, current_user, complaint_id, request.reopen_reason)
    return ComplaintResponse.from_complaint(complaint)


# ==================================================
# DUPLICATES
# ==================================================
@router.get("/{complaint_id}/duplicates", response_model=DuplicateComplaintResponse)
def get_duplicates(
    complaint_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return duplicate_service.get_duplicates(db, complaint_id)


@router.post("/{complaint_id}/merge-duplicates", response_model=DuplicateComplaintResponse)
def merge_duplicates(
    complaint_id: int,
    duplicate_ids: List[int] = Body(...),
    current_user: User = Depends(staff_only),
    db: Session = Depends(get_db),
):
    return duplicate_service.merge_complaints(db, current_user, complaint_id, duplicate_ids)
