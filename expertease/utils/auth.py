# expertease/utils/auth.py
from datetime import datetime, timedelta, timezone
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from ..config import settings

# Constants
SECRET_KEY = settings.secret_key
ALGORITHM = settings.algorithm
ACCESS_TOKEN_EXPIRE_MINUTES = settings.access_token_expire_minutes

USER_TYPES = ("client", "specialist", "admin")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")


def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


async def get_current_user(token: str = Depends(oauth2_scheme)) -> dict:
    """Get the current authenticated user from JWT token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str = payload.get("sub")
        user_type: str = payload.get("type")
        if user_id is None or user_type is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    if user_type not in USER_TYPES:
        raise credentials_exception

    return {"id": user_id, "type": user_type}


def require_roles(*roles: str):
    """Dependency factory restricting a route to some user types"""
    async def checker(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user["type"] not in roles:
            raise HTTPException(
                status_code=403,
                detail=f"Only {' or '.join(roles)} users can perform this action"
            )
        return current_user
    return checker


require_admin = require_roles("admin")

__all__ = [
    "oauth2_scheme",
    "create_access_token",
    "get_current_user",
    "require_roles",
    "require_admin",
    "ACCESS_TOKEN_EXPIRE_MINUTES"
]
