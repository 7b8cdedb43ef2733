import secrets
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from cabinetry.core.settings import settings

security = HTTPBasic(realm="Admin")


@dataclass(frozen=True)
class AdminIdentity:
    username: str


def require_admin(
    credentials: HTTPBasicCredentials = Depends(security),
) -> AdminIdentity:
    if not settings.ADMIN_USERNAME or not settings.ADMIN_PASSWORD:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin access is not configured",
        )

    ok_user = secrets.compare_digest(credentials.username.encode(), settings.ADMIN_USERNAME.encode())
    ok_pass = secrets.compare_digest(credentials.password.encode(), settings.ADMIN_PASSWORD.encode())

    if not (ok_user and ok_pass):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return AdminIdentity(username=credentials.username)
