"""HTTP basic authentication for the management UI."""
import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

security = HTTPBasic(realm="cog", auto_error=False)


def _matches(candidate: str, expected: str) -> bool:
    return secrets.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


async def require_ui_user(
    request: Request,
    credentials: HTTPBasicCredentials | None = Depends(security),
) -> str:
    settings = request.app.state.container.settings.security
    if (
        credentials is None
        or not credentials.username
        or not credentials.password
        or not _matches(credentials.username, settings.ui_login)
        or not _matches(credentials.password, settings.ui_secret)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
            headers={"WWW-Authenticate": 'Basic realm="cog"'},
        )
    return credentials.username
