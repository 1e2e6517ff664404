"""
Factory d'application utilisée par les entrypoints (ex: portal.asgi) et les tests.
Ordonne les étapes d'initialisation de manière lisible et testable.
"""
from fastapi import FastAPI
from .lifespan import lifespan
from .middlewares import register_basic_middlewares, register_no_cache_middleware
from .security import register_security_middleware
from .exceptions import register_exception_handlers
from .routers import register_routers

def create_app() -> FastAPI:
    """
    Construit l'app FastAPI avec le lifespan et enregistre:
      - middlewares de base (session, CORS, hosts), sécurité, no-cache
      - gestionnaire d'exceptions PortalError
      - tous les routers (auth, inscription, paiement, health)
    """
    app = FastAPI(title="Portail enchères", lifespan=lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_cache_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app
