"""
Middlewares transverses de l'application.
- register_basic_middlewares: session (stockage de l'AuthSession et du PaymentIntent), CORS, TrustedHost.
- register_no_cache_middleware: empêche la mise en cache des pages et API de paiement.
"""
from fastapi import Request, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from starlette.middleware.sessions import SessionMiddleware
from portal.config import COOKIE_SECURE, CORS_ORIGINS, ALLOWED_HOSTS, SESSION_SECRET_KEY, SESSION_COOKIE_NAME

NO_CACHE_PREFIXES = ("/payment", "/api/v1/payments", "/api/v1/auth", "/api/v1/registration")

def register_basic_middlewares(app: FastAPI) -> None:
    """
    - SessionMiddleware: cookie signé, survit à la navigation vers la passerelle et au retour.
      same_site=lax: le cookie accompagne le retour GET de la passerelle.
    - CORSMiddleware: origines définies (dev/prod).
    - TrustedHostMiddleware: limite les hôtes acceptés.
    """
    app.add_middleware(
        SessionMiddleware,
        secret_key=SESSION_SECRET_KEY,
        session_cookie=SESSION_COOKIE_NAME,
        same_site="lax",
        https_only=COOKIE_SECURE,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=ALLOWED_HOSTS + ["*"] if "*" in CORS_ORIGINS else ALLOWED_HOSTS,
    )

def register_no_cache_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def no_cache_for_payment(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith(NO_CACHE_PREFIXES):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return response
