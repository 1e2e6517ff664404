"""
Gestionnaires d'exceptions utilisés par la factory.
- PortalError: JSON {detail, code, recovery, errors?} pour les clients API.
- Navigation web (Accept: text/html, hors /api/*): une erreur dont la reprise est de recommencer
  l'inscription redirige vers la page d'échec avec le message.
"""
import logging
import urllib.parse
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.status import HTTP_303_SEE_OTHER
from portal.config import PAYMENT_FAILED_PATH
from portal.errors import PortalError, RECOVERY_RESTART_REGISTRATION

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        logger.info("portal error code=%s path=%s", exc.code, request.url.path)
        accept = (request.headers.get("accept") or "").lower()
        is_api = request.url.path.startswith("/api/")
        if "text/html" in accept and not is_api and exc.recovery == RECOVERY_RESTART_REGISTRATION:
            query = urllib.parse.urlencode({"error": exc.message, "code": exc.code})
            return RedirectResponse(url=f"{PAYMENT_FAILED_PATH}?{query}", status_code=HTTP_303_SEE_OTHER)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
