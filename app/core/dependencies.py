# app/core/dependencies.py
# FastAPI dependency functions for viewer identity and role checks
#
# Services never look up "who is logged in" themselves: endpoints resolve the
# Viewer here and pass viewer.id / viewer.role explicitly.

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.security import decode_token

# Bearer token extractor -- auto_error=False so we can handle 401 ourselves
bearer_scheme = HTTPBearer(auto_error=False)

ROLES = ("student", "parent", "teacher", "admin")


@dataclass(frozen=True)
class Viewer:
    id: str
    role: str


# ── Token Extraction ──────────────────────────────────────────────────────────

def viewer_from_token(token: Optional[str]) -> Optional[Viewer]:
    """
    Decode a bearer token into a Viewer.
    Returns None if no token, invalid token, wrong type or unknown role.
    Also used by the WebSocket endpoint, which gets its token as a query param.
    """
    if not token:
        return None

    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        return None

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or role not in ROLES:
        return None

    return Viewer(id=user_id, role=role)


# ── Auth Dependencies ─────────────────────────────────────────────────────────

def require_login(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Viewer:
    """Requires a valid JWT token. Raises 401 if not authenticated."""
    viewer = viewer_from_token(credentials.credentials if credentials else None)
    if viewer is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required. Please log in.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return viewer


def require_teacher(viewer: Viewer = Depends(require_login)) -> Viewer:
    """Requires role='teacher'. Raises 403 for other roles."""
    if viewer.role != "teacher":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Teacher access required.",
        )
    return viewer


def require_student(viewer: Viewer = Depends(require_login)) -> Viewer:
    if viewer.role != "student":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Student access only.",
        )
    return viewer


def require_parent(viewer: Viewer = Depends(require_login)) -> Viewer:
    if viewer.role != "parent":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Parent access only.",
        )
    return viewer
