"""Session and role helpers for tournament administration."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException, status

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Session:
    user_id: str | None = None
    access_token: str | None = None
    role: str | None = None

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == ADMIN_ROLE


def _bearer(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_session(
    user_id: str | None = Header(default=None, alias="x-user-id"),
    authorization: str | None = Header(default=None),
    role: str | None = Header(default=None, alias="x-tournament-role"),
) -> Session:
    """Build the caller's session from request headers."""

    return Session(user_id=user_id, access_token=_bearer(authorization), role=role)


def require_admin(
    role: str | None = Header(default=None, alias="x-tournament-role"),
    user_id: str | None = Header(default=None, alias="x-user-id"),
) -> str | None:
    """Ensure that the caller administers tournaments."""

    if (role or "").lower() != ADMIN_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="admin role required"
        )
    return user_id


__all__ = ["Session", "get_session", "require_admin", "ADMIN_ROLE"]
