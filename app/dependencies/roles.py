from fastapi import Depends, HTTPException
from app.constants.order_status import ROLE_ADMIN, ROLE_AUTHOR, ROLE_CUSTOMER
from app.models.user import User
from app.utils.token import get_current_user


def require_admin(current_user: User = Depends(get_current_user)):
    if current_user.role != ROLE_ADMIN:
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user


def require_author(current_user: User = Depends(get_current_user)):
    if current_user.role != ROLE_AUTHOR:
        raise HTTPException(status_code=403, detail="Author access required")
    return current_user


def require_customer(current_user: User = Depends(get_current_user)):
    if current_user.role != ROLE_CUSTOMER:
        raise HTTPException(status_code=403, detail="Customer access required")
    return current_user
