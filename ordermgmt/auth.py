import time
from typing import NamedTuple, Optional

import jwt
from passlib.context import CryptContext

from .config import get_settings
from .errors import PermissionDenied
from .models import UserRole

# Use pbkdf2_sha256 as default to avoid bcrypt 72-byte limitation in some envs
pwd_context = CryptContext(schemes=["pbkdf2_sha256", "bcrypt"], deprecated="auto")

ALGORITHM = "HS256"


class Actor(NamedTuple):
    """The authenticated caller, as seen by the order core."""

    user_id: Optional[int]
    role: UserRole

    @property
    def is_privileged(self) -> bool:
        return self.role in (UserRole.ADMIN, UserRole.EMPLOYEE)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def require_privileged(actor: Actor) -> None:
    if not actor.is_privileged:
        raise PermissionDenied("admin or employee role required")


def require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise PermissionDenied("admin role required")


def can_view_order(actor: Actor, order_user_id: int) -> bool:
    return actor.is_privileged or actor.user_id == order_user_id


def create_access_token(user_id: int, role: str, expires_delta: Optional[int] = None) -> str:
    settings = get_settings()
    now = int(time.time())
    exp = now + (expires_delta or settings.jwt_exp_seconds)
    payload = {"sub": str(user_id), "role": role, "iat": now, "exp": exp}
    token = jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)
    return token


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, get_settings().jwt_secret, algorithms=[ALGORITHM])


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)
