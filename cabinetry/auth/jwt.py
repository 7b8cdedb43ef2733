from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from cabinetry.core.settings import settings

ALGORITHM = "HS256"


def create_access_token(*, user_id: str, email: str, role: str = "customer") -> str:
    issued = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "email": email,
        "role": role,
        "iat": issued,
        "exp": issued + timedelta(hours=settings.JWT_EXP_HOURS),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Verified claims of a portal token. Raises ``jwt.PyJWTError`` when invalid or expired."""
    return jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[ALGORITHM],
        options={"require": ["sub", "exp"]},
    )
