"""
Auth gate: resolves a request to an identity and role.

Tokens are HS256 JWTs carrying `sub` (user id), `role` and `name`. They are
read from the `Authorization: Bearer` header, or from the `token` cookie the
web frontend keeps.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import Request
from jose import jwt, JWTError

from campus_canteen.config import settings
from campus_canteen.errors import Unauthorized
from campus_canteen.models.user import RoleEnum

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    user_id: str
    role: RoleEnum
    name: str = ""

    @property
    def is_privileged(self) -> bool:
        return self.role.is_privileged


def create_access_token(user_id: str, role: RoleEnum | str, name: str = "") -> str:
    expire = datetime.now(tz=timezone.utc) + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user_id),
        "role": RoleEnum(role).value,
        "name": name,
        "exp": expire,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """Decode and validate a JWT. Raises JWTError on failure."""
    return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])


def _token_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header.split(" ", 1)[1].strip() or None
    return request.cookies.get("token")


def resolve_identity(request: Request) -> Optional[Identity]:
    token = _token_from_request(request)
    if not token:
        return None

    try:
        claims = decode_token(token)
    except JWTError as exc:
        logger.info("Rejected token: %s", exc)
        return None

    user_id = claims.get("sub")
    try:
        role = RoleEnum(claims.get("role"))
    except ValueError:
        logger.info("Rejected token with unknown role %r", claims.get("role"))
        return None
    if not user_id:
        return None

    return Identity(user_id=str(user_id), role=role, name=claims.get("name") or "")


async def get_current_identity(request: Request) -> Identity:
    """
    FastAPI dependency for endpoints that require a signed-in user.
    """
    identity = resolve_identity(request)
    if identity is None:
        raise Unauthorized("Authentication required")
    return identity
