"""
Caller identity.

The service sits behind an auth gateway that verifies the user's session and
forwards the resolved uid in `X-User-Id`. A request without it is never
treated as anonymous.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from .errors import Unauthenticated

USER_HEADER = "x-user-id"


@dataclass(frozen=True)
class Caller:
    uid: str


def resolve_caller(request: Request) -> Optional[Caller]:
    uid = (request.headers.get(USER_HEADER) or "").strip()
    if not uid:
        return None
    return Caller(uid=uid)


def require_caller(caller: Optional[Caller]) -> Caller:
    if caller is None:
        raise Unauthenticated("You must be logged in.")
    return caller


def current_caller(request: Request) -> Caller:
    """FastAPI dependency."""
    return require_caller(resolve_caller(request))
