from typing import Optional, Dict, Any
import logging
from portal.errors import AuthError

logger = logging.getLogger(__name__)

class AuthResult:
    """
    Résultat typé d'une tentative de connexion.
    - success=True: token + user renseignés
    - success=False: error_kind vaut AuthError.INVALID_CREDENTIALS ou AuthError.NETWORK
    """
    def __init__(
        self,
        success: bool,
        token: Optional[str] = None,
        user: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        error_kind: Optional[str] = None,
    ):
        self.success = success
        self.token = token
        self.user = user
        self.error = error
        self.error_kind = error_kind

    @property
    def retryable(self) -> bool:
        return self.error_kind == AuthError.NETWORK

    def to_error(self) -> AuthError:
        return AuthError(self.error_kind or AuthError.INVALID_CREDENTIALS, self.error)

def determine_role(user_type: Optional[str]) -> str:
    if str(user_type or "").upper() in ("A", "ADMIN"):
        return "admin"
    return "user"

def build_user_dict(raw: Dict[str, Any], fallback_email: str = "") -> Dict[str, Any]:
    """Normalise l'utilisateur amont {id, name, emailId, userType, countryCode}."""
    name = (raw.get("name") or "").strip()
    parts = name.split(" ") if name else []
    return {
        "id": str(raw["id"]) if raw.get("id") is not None else None,
        "username": name or "User",
        "email": raw.get("emailId") or fallback_email,
        "first_name": parts[0] if parts else "",
        "last_name": " ".join(parts[1:]),
        "role": determine_role(raw.get("userType")),
        "country_code": raw.get("countryCode"),
    }

def make_auth_result(body: Dict[str, Any], email: str) -> AuthResult:
    """
    Convertit la réponse de /auth/login:
    {success, message, data: {token, user: {...}}}
    Un corps sans succès ou sans token est un échec d'identifiants.
    """
    data = body.get("data") or {}
    token = data.get("token") if isinstance(data, dict) else None
    if not body.get("success") or not token:
        return AuthResult(
            False,
            error=body.get("message") or "Identifiants invalides",
            error_kind=AuthError.INVALID_CREDENTIALS,
        )
    user = data.get("user") or {}
    if not isinstance(user, dict):
        logger.warning("auth.login malformed user in response: %s", type(user).__name__)
        return AuthResult(False, error="Réponse de connexion invalide", error_kind=AuthError.NETWORK)
    return AuthResult(True, token=token, user=build_user_dict(user, email))

def handle_exception(action: str, e: Exception) -> AuthResult:
    logger.exception("Erreur %s", action)
    return AuthResult(False, error=f"Erreur {action}: {e.__class__.__name__}", error_kind=AuthError.NETWORK)
