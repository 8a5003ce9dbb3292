import re

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
import structlog

from ..db import get_db
from ..errors import AuthError, ValidationError
from ..models import choices
from ..models.models import User
from ..schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    SignupRequest,
    UserOut,
    VerifyTokenResponse,
)
from ..services.broadcaster import EVENT_PASSWORD_CHANGE
from ..services.time_utils import utcnow
from .security import create_access_token, get_current_user, get_password_hash, verify_password


router = APIRouter(tags=["auth"])
log = structlog.get_logger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
PASSWORD_POLICY = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$")


def user_out(user: User) -> UserOut:
    return UserOut(id=str(user.id), username=user.username, email=user.email, role=user.role)


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(req: SignupRequest, db: Session = Depends(get_db)):
    if req.role not in choices.ROLES:
        raise ValidationError("Invalid role", [f"role must be one of: {', '.join(choices.ROLES)}"])
    email = req.email.strip().lower()
    if db.query(User).filter(User.email == email).first():
        raise ValidationError("Email already exists")
    user = User(
        username=req.username.strip(),
        email=email,
        password_hash=get_password_hash(req.password),
        role=req.role,
        created_at=utcnow(),
    )
    db.add(user)
    db.commit()
    log.info("user_signed_up", user_id=str(user.id), role=user.role)
    return AuthResponse(message="User registered successfully", user=user_out(user), token=create_access_token(user))


@router.post("/login", response_model=AuthResponse)
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == req.email.strip().lower()).first()
    # Same answer for unknown email and wrong password
    if not user or not verify_password(req.password, user.password_hash):
        raise AuthError(INVALID_CREDENTIALS)
    log.info("user_logged_in", user_id=str(user.id))
    return AuthResponse(message="Login successful", user=user_out(user), token=create_access_token(user))


@router.post("/change-password", response_model=MessageResponse)
def change_password(
    req: ChangePasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if req.current_password == req.new_password:
        raise ValidationError("New password must be different from the current password")
    if not PASSWORD_POLICY.match(req.new_password):
        raise ValidationError(
            "New password must be at least 8 characters long and include at least one uppercase letter, "
            "one lowercase letter, one number, and one special character (@$!%*?&)"
        )
    if not verify_password(req.current_password, user.password_hash):
        raise AuthError("Current password is incorrect")

    user.password_hash = get_password_hash(req.new_password)
    user.last_password_change = utcnow()
    db.commit()
    log.info("password_changed", user_id=str(user.id))

    request.app.state.broadcaster.publish(
        EVENT_PASSWORD_CHANGE,
        {"user_id": str(user.id), "message": "Your password was changed successfully."},
        user_id=str(user.id),
    )
    return MessageResponse(message="Password changed successfully")


@router.get("/verify-token", response_model=VerifyTokenResponse)
def verify_token(user: User = Depends(get_current_user)):
    return VerifyTokenResponse(user=user_out(user))
