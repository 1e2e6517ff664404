from fastapi import APIRouter, Request
from portal.config import API_BASE_URL
from portal.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])

@router.get("")
def health_root(request: Request):
    handles = getattr(request.app.state, "poll_handles", None) or set()
    return {
        "ok": True,
        "upstream": API_BASE_URL,
        "active_polls": len(handles),
        "rate_limit": rate_limit_health_info(request),
    }
