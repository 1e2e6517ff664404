"""
ASGI entrypoint: expose `app` pour les process managers / déploiements.

- Un process manager (ex: gunicorn + uvicorn workers) importe `portal.asgi:app`.
- Toute la configuration (routes, middlewares, sécurité, exceptions) est centralisée dans
  portal.app_setup.factory, ce fichier ne fait qu'exposer l'instance `app`.
"""

from portal.app_setup.factory import create_app

app = create_app()

if __name__ == "__main__":
    # Exécution directe utile en développement local (uvicorn standalone).
    import os
    import uvicorn
    uvicorn.run(
        "portal.asgi:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
