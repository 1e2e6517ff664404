from typing import List
from urllib.parse import urlsplit
from fastapi import FastAPI
from portal.config import API_BASE_URL, COOKIE_SECURE
from portal.payments.gateways import GATEWAYS

def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}" if parts.scheme and parts.netloc else ""

def gateway_origins() -> List[str]:
    """Origines autorisées comme cible du formulaire de redirection (CSP form-action)."""
    origins = {_origin(profile.url) for profile in GATEWAYS.values()}
    return sorted(o for o in origins if o)

def register_security_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers(request, call_next):
        response = await call_next(request)

        # En-têtes de sécurité
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
        if COOKIE_SECURE:
            response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")

        # CSP: le formulaire /payment/gateway poste vers le domaine de la passerelle
        csp_connect = ["'self'"]
        upstream = _origin(API_BASE_URL)
        if upstream:
            csp_connect.append(upstream)
        swagger_cdns = ["https://cdn.jsdelivr.net", "https://unpkg.com"]
        csp_connect.extend(swagger_cdns)
        extra_img_sources = ["https://fastapi.tiangolo.com"]

        csp = (
            "default-src 'self'; "
            "base-uri 'self'; object-src 'none'; frame-ancestors 'none'; "
            f"form-action 'self' {' '.join(gateway_origins())}; "
            f"img-src 'self' data: blob: {' '.join(extra_img_sources)}; "
            f"style-src 'self' 'unsafe-inline' {' '.join(swagger_cdns)}; "
            f"script-src 'self' 'unsafe-inline' {' '.join(swagger_cdns)}; "
            f"connect-src {' '.join(csp_connect)}"
        )
        response.headers["Content-Security-Policy"] = csp

        return response
