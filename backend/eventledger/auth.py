from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from .config import settings
from .models import UserRole
from .queries import coerce_role

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Caller:
    user_id: Optional[int]
    role: UserRole
    department: Optional[str] = None


ANONYMOUS = Caller(user_id=None, role=UserRole.public)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    to_encode["type"] = "access"
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def _decode_caller(token: str) -> Caller:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
        user_id = payload.get("sub")
        role = payload.get("role")
        if user_id is None or role is None or payload.get("type", "access") != "access":
            raise credentials_exception
        return Caller(user_id=int(user_id), role=coerce_role(role), department=payload.get("department"))
    except ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired. Please sign in again.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except (JWTError, ValueError):
        raise credentials_exception


def get_current_caller(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Caller:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _decode_caller(credentials.credentials)


def get_optional_caller(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Caller:
    if credentials is None or not credentials.credentials:
        return ANONYMOUS
    try:
        return _decode_caller(credentials.credentials)
    except HTTPException:
        return ANONYMOUS


def require_student(caller: Caller = Depends(get_current_caller)) -> Caller:
    if caller.role != UserRole.student:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Students only.")
    return caller


def require_staff(caller: Caller = Depends(get_current_caller)) -> Caller:
    if caller.role not in (UserRole.staff, UserRole.admin):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff or admin only.")
    return caller


def require_admin(caller: Caller = Depends(get_current_caller)) -> Caller:
    if caller.role != UserRole.admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admins only.")
    return caller
