from __future__ import annotations

import enum
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from flightdeck.core.config import settings


# Tokens are minted by the external auth backend; this service only verifies them.
bearer_scheme = HTTPBearer(auto_error=False)


class UserRole(str, enum.Enum):
    student = "student"
    instructor = "instructor"


@dataclass(frozen=True)
class CurrentUser:
    id: str
    role: UserRole = UserRole.student
    school_id: str | None = None


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    token = credentials.credentials if credentials else None
    if not token:
        raise HTTPException(status_code=401, detail="not authenticated")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except JWTError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    user_id = str(payload.get("sub") or "").strip()
    if not user_id:
        raise HTTPException(status_code=401, detail="invalid token")

    try:
        role = UserRole(str(payload.get("role") or UserRole.student.value))
    except ValueError as e:
        raise HTTPException(status_code=401, detail="invalid token") from e

    request.state.user_id = user_id
    return CurrentUser(id=user_id, role=role, school_id=payload.get("school_id"))


def require_roles(*roles: UserRole):
    def _dep(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="forbidden")
        return user

    return _dep
