from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from database import get_db
from app_models import User
from routers.deps import get_current_user
from schemas import UserCreate, UserLogin, UserResponse, TokenResponse, MessageResponse
from services import user_service

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(user: UserCreate, db: Session = Depends(get_db)):
    return user_service.register(db, user)


@router.post("/login", response_model=TokenResponse)
def login(user_credentials: UserLogin, db: Session = Depends(get_db)):
    return user_service.authenticate(db, user_credentials.email, user_credentials.password)


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/ping", response_model=MessageResponse)
def ping():
    return {"status": "success", "message": "Auth service is up"}
