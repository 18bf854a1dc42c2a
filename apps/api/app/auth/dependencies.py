from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.auth.utils import verify_token
from app.common.db import get_db
from app.common.models import User, WorkspaceMember
from app.core.errors import ForbiddenError

security = HTTPBearer(auto_error=False)

WRITER_ROLES = frozenset({"owner", "admin", "member"})


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> UUID:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(credentials.credentials)
    if not payload or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    user_id = payload.get("user_id") or payload.get("sub")
    try:
        return UUID(user_id)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )


def get_workspace_membership(
    workspace_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> WorkspaceMember:
    """
    Resolve the caller's membership in the workspace from the path.

    Raises:
        ForbiddenError: user is inactive or not a member of the workspace
    """
    row = db.execute(
        select(WorkspaceMember, User.is_active)
        .join(User, User.id == WorkspaceMember.user_id)
        .where(
            WorkspaceMember.workspace_id == workspace_id,
            WorkspaceMember.user_id == user_id,
        )
    ).first()
    if row is None or not row[1]:
        raise ForbiddenError("You do not have access to this workspace")
    return row[0]


def require_workspace_writer(
    membership: WorkspaceMember = Depends(get_workspace_membership),
) -> WorkspaceMember:
    """Allow only members whose role may modify workspace data."""
    if membership.role not in WRITER_ROLES:
        raise ForbiddenError(
            f"Role '{membership.role}' cannot import data into this workspace"
        )
    return membership
