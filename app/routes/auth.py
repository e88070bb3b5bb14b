import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select

from app.config import settings
from app.constants.order_status import ROLE_AUTHOR
from app.database import get_session
from app.models.user import User
from app.schemas.user_schemas import (
    ForgotPasswordRequest,
    ResetPasswordRequest,
    Token,
    UserLogin,
    UserOut,
    UserRegister,
)
from app.services.email_service import send_author_welcome, send_password_reset
from app.utils.hash import hash_password, verify_password
from app.utils.token import (
    RESET_PASSWORD,
    create_access_token,
    create_action_token,
    decode_action_token,
    get_current_user,
)

logger = logging.getLogger(__name__)

router = APIRouter()

RESET_MESSAGE = "If that email is registered, you will receive a password reset email shortly."


def user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        created_at=user.created_at,
        payout_paypal_email=user.payout_paypal_email,
        is_blocked=user.is_blocked,
        blocked_reason=user.blocked_reason,
    )


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
def register_user(payload: UserRegister, session: Session = Depends(get_session)):
    email = payload.email.strip().lower()
    existing_user = session.exec(select(User).where(User.email == email)).first()
    if existing_user:
        raise HTTPException(400, "User already exists")

    user = User(
        name=payload.name.strip(),
        email=email,
        password=hash_password(payload.password),
        role=payload.role,
    )

    session.add(user)
    session.commit()
    session.refresh(user)

    if user.role == ROLE_AUTHOR:
        # Registration succeeds whether or not the mail goes out
        send_author_welcome(user)

    token = create_access_token({"user_id": user.id})
    return Token(access_token=token, token_type="bearer", user=user_out(user))


@router.post("/login", response_model=Token)
def login(payload: UserLogin, session: Session = Depends(get_session)):
    email = payload.email.strip().lower()
    user = session.exec(select(User).where(User.email == email)).first()

    if not user or not verify_password(payload.password, user.password):
        raise HTTPException(401, "Invalid email or password")

    if not user.can_login:
        raise HTTPException(403, "User account is disabled")

    token = create_access_token({"user_id": user.id})
    return Token(access_token=token, token_type="bearer", user=user_out(user))


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return user_out(current_user)


@router.post("/forgot-password")
def forgot_password(request: ForgotPasswordRequest, session: Session = Depends(get_session)):
    email = request.email.strip().lower()
    user = session.exec(select(User).where(User.email == email)).first()

    # Same answer either way so registered emails are not revealed
    if not user:
        return {"message": RESET_MESSAGE}

    reset_token = create_action_token(user.id, RESET_PASSWORD, timedelta(hours=1))
    reset_link = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={reset_token}"

    send_password_reset(user, reset_link)
    logger.info(f"Password reset requested for user {user.id}")

    return {"message": RESET_MESSAGE}


@router.post("/reset-password")
def reset_password(request: ResetPasswordRequest, session: Session = Depends(get_session)):
    user_id = decode_action_token(request.token, RESET_PASSWORD)
    user = session.get(User, user_id) if user_id else None
    if not user:
        raise HTTPException(400, "Invalid or expired reset token")

    user.password = hash_password(request.new_password)

    session.add(user)
    session.commit()

    return {"message": "Password has been reset successfully. You can now log in."}


@router.post("/logout")
def logout():
    return {"message": "Logout successful"}
