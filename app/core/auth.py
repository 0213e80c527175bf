"""
Authentication - passwords, JWT access tokens, route dependencies.

Tokens carry the user's id in `sub` plus the role; the role is re-read from
PostgreSQL on every request so deactivation and role changes apply at once.

Dependencies:
    get_current_user   any active account
    get_current_admin  role == "admin" (retention jobs, provider reset, costs)
"""

from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import get_settings
from app.db.postgres import execute_raw_sql

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign `data` with an `exp` claim (default lifetime: jwt_expire_minutes)."""
    claims = dict(data)
    claims["exp"] = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Claims of a valid token, None when the signature or expiry check fails."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )


def load_account(user_id: str) -> Optional[dict]:
    rows = execute_raw_sql(
        "SELECT user_id, email, role, is_active FROM users WHERE user_id = :user_id",
        {"user_id": user_id}
    )
    return rows[0] if rows else None


async def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> dict:
    """
    Resolve the bearer token to {user_id, email, role}.

    401 for a bad token or unknown user, 403 for a deactivated account.
    """
    claims = decode_token(credentials.credentials)
    user_id = claims.get("sub") if claims else None
    if not user_id:
        raise _unauthorized()

    account = load_account(user_id)
    if not account:
        raise _unauthorized()
    if not account["is_active"]:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account deactivated")

    return {"user_id": account["user_id"], "email": account["email"], "role": account["role"]}


async def get_current_admin(user: dict = Depends(get_current_user)) -> dict:
    if user["role"] != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admins only")
    return user
