from datetime import datetime, timedelta, timezone
from typing import Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from jose import ExpiredSignatureError, JWTError, jwt

from marketplace.services.exceptions import Unauthenticated


def create_access_token(user, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
    )
    to_encode = {"sub": str(user.pk), "role": user.role, "exp": expire}
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def user_from_token(token: str):
    """Decode a bearer token and return the active user it was issued to."""
    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
    except ExpiredSignatureError:
        raise Unauthenticated("Token expired.")
    except JWTError:
        raise Unauthenticated("Invalid token.")

    user_id = payload.get("sub")
    if user_id is None:
        raise Unauthenticated("Invalid token.")

    User = get_user_model()
    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise Unauthenticated("User not found.")
    if not user.is_active:
        raise Unauthenticated("Account is disabled.")
    return user
