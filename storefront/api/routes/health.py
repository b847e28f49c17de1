from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness check used by load balancers.

    Reports the number of stream sessions currently relaying, which is handy
    when draining an instance.
    """

    governor = getattr(request.app.state, "governor", None)
    active = governor.sessions.active_count() if governor is not None else 0
    return {"status": "ok", "active_streams": active}
