"""
Lancement local du portail: python -m portal

Variables lues:
- HOST / PORT: adresse d'écoute (0.0.0.0:8000 par défaut)
- UVICORN_RELOAD: reload auto en dev ("1"/"true"/"yes")
- LOG_LEVEL: niveau de logs uvicorn
Derrière un reverse proxy, les en-têtes X-Forwarded-* sont pris en compte (retours passerelle en https).
"""
import os
import uvicorn

def main() -> None:
    uvicorn.run(
        "portal.asgi:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 8000)),
        reload=os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes"),
        log_level=os.environ.get("LOG_LEVEL", "info"),
        proxy_headers=True,
    )

if __name__ == "__main__":
    main()
