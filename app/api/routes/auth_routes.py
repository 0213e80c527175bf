"""
Authentication Routes

POST /auth/register - create an account (role "user"), 409 on duplicate email
POST /auth/login    - exchange email/password for a bearer token
GET  /auth/me       - profile of the token's owner
"""

import logging
import uuid

from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from app.db.postgres import get_db_session, execute_raw_sql
from app.core.auth import hash_password, verify_password, create_access_token, get_current_user
from app.schemas.schemas import (
    RegisterRequest, LoginRequest, TokenResponse, UserResponse, MessageResponse
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _find_by_email(email: str):
    rows = execute_raw_sql(
        "SELECT user_id, password_hash, role, is_active FROM users WHERE email = :email",
        {"email": email}
    )
    return rows[0] if rows else None


@router.post("/register", response_model=MessageResponse, status_code=201)
async def register(request: RegisterRequest):
    if _find_by_email(request.email):
        raise HTTPException(status_code=409, detail="Email already registered")

    user_id = str(uuid.uuid4())
    try:
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO users (user_id, email, password_hash, full_name, role)
                    VALUES (:user_id, :email, :password_hash, :full_name, 'user')
                """),
                {
                    "user_id": user_id,
                    "email": request.email,
                    "password_hash": hash_password(request.password),
                    "full_name": request.full_name,
                }
            )
    except IntegrityError:
        # a concurrent registration took the email between lookup and insert
        raise HTTPException(status_code=409, detail="Email already registered") from None
    logger.info("Registered user %s", user_id)
    return MessageResponse(message="Registered successfully. Please login.")


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    """Send the token back as `Authorization: Bearer <token>`."""
    account = _find_by_email(request.email)
    if not account or not verify_password(request.password, account["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not account["is_active"]:
        raise HTTPException(status_code=403, detail="Account deactivated")

    token = create_access_token(data={"sub": account["user_id"], "role": account["role"]})
    return TokenResponse(access_token=token, user_id=account["user_id"], role=account["role"])


@router.get("/me", response_model=UserResponse)
async def get_me(user: dict = Depends(get_current_user)):
    rows = execute_raw_sql(
        "SELECT user_id, email, full_name, role, is_active, created_at FROM users WHERE user_id = :user_id",
        {"user_id": user["user_id"]}
    )
    if not rows:
        raise HTTPException(status_code=404, detail="User not found")
    return UserResponse(**rows[0])
