# portal.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

"""
Configuration centrale du portail.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Expose l'URL de l'API marketplace amont et le code pays par défaut
- Sécurité cookies/session, CORS/hosts
- Paramètres du suivi de paiement (intervalle de polling, délai d'expiration)
- Surcharges des URLs et identifiants marchands des passerelles de paiement
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name) or "") or default)
    except ValueError:
        return default

# API marketplace amont (nonce, login, inscription avec paiement, statut paiement)
API_BASE_URL = _clean_env(os.getenv("API_BASE_URL") or "http://localhost:8081/api/v1").rstrip("/")
if API_BASE_URL and not API_BASE_URL.startswith("http"):
    API_BASE_URL = "http://" + API_BASE_URL
DEFAULT_COUNTRY_CODE = _clean_env(os.getenv("DEFAULT_COUNTRY_CODE") or "DOHA")
HTTP_TIMEOUT_SECONDS = _int_env("HTTP_TIMEOUT_SECONDS", 10)

# URL publique du portail (construction des URLs de retour passerelle)
BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000").rstrip("/")

# Cookies / session
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
SESSION_SECRET_KEY = _clean_env(os.getenv("SESSION_SECRET_KEY") or "replace_me_with_a_long_random_secret")
SESSION_COOKIE_NAME = "portal_session"

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

# Suivi de paiement: polling toutes les 3 s, abandon après 15 min
PAYMENT_POLL_INTERVAL_SECONDS = _int_env("PAYMENT_POLL_INTERVAL_SECONDS", 3)
PAYMENT_TIMEOUT_SECONDS = _int_env("PAYMENT_TIMEOUT_SECONDS", 15 * 60)

# Routes de retour passerelle (relatives à BASE_URL)
PAYMENT_SUCCESS_PATH = os.getenv("PAYMENT_SUCCESS_PATH", "/payment/success")
PAYMENT_FAILED_PATH = os.getenv("PAYMENT_FAILED_PATH", "/payment/failed")

def gateway_setting(prefix: str, gateway_name: str, default: str) -> str:
    """
    Lit une surcharge par passerelle, ex: GATEWAY_URL_KNET, MERCHANT_ID_QNB.
    Retourne la valeur par défaut si la variable est absente ou vide.
    """
    key = f"{prefix}_{gateway_name.upper()}"
    return _clean_env(os.getenv(key) or "") or default
