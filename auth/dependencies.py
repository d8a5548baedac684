"""
auth/dependencies.py -- FastAPI Depends() helpers for the auth package.

The SessionService instance is built once in the api/main.py lifespan and
stored on app.state. Route handlers receive it through get_session_service()
so tests can swap the whole service graph by patching the lifespan.

Tokens travel in the JSON request body (the contract clients were built
against), so there is no cookie/Bearer extraction here.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi because this module is part of
  the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.service import SessionService


def get_session_service(request: Request) -> SessionService:
    """Return the SessionService attached to the running app.

    Use as a FastAPI dependency:
        @router.post("/logout")
        def route(body: AccessTokenRequest, service: SessionService = Depends(get_session_service)): ...
    """
    return request.app.state.session_service
