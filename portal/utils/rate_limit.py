from typing import Dict, Any
from fastapi import Request, HTTPException, Response
import os
import time
import hashlib
from portal.config import SESSION_COOKIE_NAME

def _client_key(request: Request) -> str:
    # Priorité: cookie de session (hashé) puis IP
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    path = request.url.path
    if cookie:
        h = hashlib.sha256(cookie.encode("utf-8")).hexdigest()[:16]
        return f"session:{h}:{path}"
    ip = request.client.host if request.client else "local"
    return f"ip:{ip}:{path}"

def optional_rate_limit(times: int, seconds: int):
    """
    Dépendance de limitation de débit (connexion, inscription).
    - LOCAL_RATE_LIMIT_FALLBACK=1: compteur mémoire sur app.state (dev/tests)
    - app.state.rate_limit_enabled=False: aucune limitation
    - sinon fastapi-limiter (Redis); une erreur du limiteur ne bloque jamais la requête
    """
    async def _dep(request: Request):
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            now = time.time()
            key = _client_key(request)
            store = getattr(request.app.state, "_rl_store", {})
            hits = [t for t in store.get(key, []) if now - t < seconds]
            if len(hits) >= times:
                raise HTTPException(status_code=429, detail="Trop de requêtes, réessayez plus tard")
            hits.append(now)
            store[key] = hits
            request.app.state._rl_store = store
            return

        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return

        try:
            from fastapi_limiter.depends import RateLimiter
            async def _identifier(req: Request) -> str:
                return _client_key(req)
            return await RateLimiter(times=times, seconds=seconds, identifier=_identifier)(request, Response())
        except HTTPException:
            raise
        except Exception:
            return
    return _dep

def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    try:
        from fastapi_limiter import FastAPILimiter
        ready = getattr(FastAPILimiter, "redis", None) is not None
    except Exception:
        ready = False
    return {
        "enabled": (bool(enabled) if enabled is not None else None),
        "ready": ready,
        "backend": "redis" if ready else ("memory" if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1" else None),
    }
