from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from app_models import User
from routers.deps import get_current_user
from schemas import UserResponse, UpdateProfileRequest, ChangePasswordRequest, MessageResponse
from services import user_service

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/profile", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return user_service.get_profile(db, current_user.id)


@router.put("/profile", response_model=UserResponse)
def update_profile(
    request: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return user_service.update_profile(db, current_user, request)


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user_service.change_password(db, current_user, request)
    return {"status": "success", "message": "Password changed successfully"}
