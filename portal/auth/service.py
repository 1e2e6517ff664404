from typing import Optional
import logging
import httpx

from portal.config import DEFAULT_COUNTRY_CODE
from portal.errors import AuthError, ChallengeUnavailable
from portal.infra import api_client
from .hashing import hash_credential
from .models import AuthResult, make_auth_result, handle_exception
from .repository import (
    fetch_random_key,
    post_login,
    get_token_validity,
)

logger = logging.getLogger(__name__)

# --- Cas d'usage Auth exposés ---

def request_nonce(http: httpx.Client) -> str:
    """Nonce de connexion:
    - Un appel réseau par tentative, jamais de réutilisation d'un nonce précédent
    - ChallengeUnavailable si le serveur ne renvoie pas {success: true, randomKey}
    """
    try:
        body = fetch_random_key(http)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("auth.request_nonce failed: %s", e.__class__.__name__)
        raise ChallengeUnavailable() from e
    key = body.get("randomKey") if isinstance(body, dict) else None
    if not (isinstance(body, dict) and body.get("success") and isinstance(key, str) and key):
        raise ChallengeUnavailable()
    return key

def login(email: str, password: str, country_code: Optional[str] = None) -> AuthResult:
    """Connexion challenge–réponse:
    1) nonce frais sur un client amont neuf (même session pour nonce et login)
    2) credential = SHA1(password + nonce)
    3) POST /auth/login {emailId, password: credential, countryCode}
    4) Résultat typé: succès, identifiants invalides ou erreur réseau (jamais d'exception)
    """
    email = (email or "").strip()
    country_code = country_code or DEFAULT_COUNTRY_CODE
    if not email or not password:
        return AuthResult(False, error="Email et mot de passe requis", error_kind=AuthError.INVALID_CREDENTIALS)
    try:
        with api_client.new_client() as http:
            nonce = request_nonce(http)
            credential = hash_credential(password, nonce)
            resp = post_login(http, email, credential, country_code)
    except ChallengeUnavailable as e:
        return AuthResult(False, error=e.message, error_kind=AuthError.NETWORK)
    except httpx.HTTPError as e:
        return handle_exception("login", e)

    if resp.status_code >= 500:
        logger.warning("auth.login upstream status=%s", resp.status_code)
        return AuthResult(False, error="Serveur d'authentification indisponible", error_kind=AuthError.NETWORK)
    try:
        body = resp.json()
    except ValueError as e:
        return handle_exception("login", e)
    if not isinstance(body, dict):
        return AuthResult(False, error="Réponse de connexion invalide", error_kind=AuthError.NETWORK)

    result = make_auth_result(body, email)
    logger.info("auth.login email=%s success=%s", email, result.success)
    return result

def validate_token(token: str) -> bool:
    """Vérifie auprès du serveur qu'un jeton est toujours valide ({status, data: {valid}})."""
    if not token:
        return False
    try:
        body = get_token_validity(api_client.get_client(), token)
    except (httpx.HTTPError, ValueError):
        logger.exception("auth.validate_token failed")
        return False
    if not isinstance(body, dict):
        return False
    data = body.get("data") or {}
    return bool(body.get("status") and isinstance(data, dict) and data.get("valid"))
