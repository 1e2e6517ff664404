"""
Registre central des routers.
- API v1: auth, registration, payments
- Pages: page passerelle et retours /payment/success, /payment/failed
- Health: health_router
"""
from fastapi import FastAPI
from portal.auth.views import api_router as auth_api_router
from portal.registration.views import api_router as registration_api_router
from portal.payments import views as payments_views
from portal.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    # API v1
    app.include_router(auth_api_router)
    app.include_router(registration_api_router)
    app.include_router(payments_views.api_router)
    # Pages paiement (HTML)
    app.include_router(payments_views.router)
    # Health & monitoring
    app.include_router(health_router)
