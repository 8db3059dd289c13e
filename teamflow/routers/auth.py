# teamflow/routers/auth.py
from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session
import logging

from teamflow.database import get_db
from teamflow.models.user import User
from teamflow.schemas.user import UserCreate, UserLogin, UserOut
from teamflow.schemas.tokens import Token
from teamflow.utils.auth import get_current_user
from teamflow.utils.security import hash_password, verify_password, create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/register", response_model=UserOut)
def register(
    user: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Managers register new staff members"""
    if not current_user.is_manager:
        raise HTTPException(status_code=403, detail="Only managers can register staff")

    existing_user = db.query(User).filter(User.email == user.email).first()
    if existing_user:
        raise HTTPException(status_code=400, detail="Email already registered")

    new_user = User(
        name=user.name,
        email=user.email,
        hashed_password=hash_password(user.password),
        role=user.role,
        avatar=user.avatar,
    )

    db.add(new_user)
    db.commit()
    db.refresh(new_user)
    logger.info(f"Staff registered: {new_user.email} ({new_user.role.value}) by {current_user.email}")
    return new_user

@router.post("/login", response_model=Token)
def login(user: UserLogin, db: Session = Depends(get_db)):
    db_user = db.query(User).filter(User.email == user.email).first()
    if not db_user or not verify_password(user.password, db_user.hashed_password):
        raise HTTPException(status_code=400, detail="Invalid credentials")
    if not db_user.is_active:
        raise HTTPException(status_code=400, detail="Account has been deactivated")

    token = create_access_token(data={"sub": db_user.email})
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": db_user,
    }

@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user
