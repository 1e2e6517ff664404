"""
Session d'authentification du portail.

AuthSession est construite explicitement au-dessus d'un stockage clé/valeur persistant
(request.session, cookie signé par SessionMiddleware) et injectée dans les routes via
get_auth_session. Elle possède seule le jeton: les collaborateurs lisent user/token mais
n'écrivent jamais dans le stockage.

Machine d'états: LOGGED_OUT -> AUTHENTICATING -> {LOGGED_IN | LOGGED_OUT}.
AUTHENTICATING n'est jamais persisté: un rechargement pendant la connexion retombe en LOGGED_OUT.
"""
import enum
import json
import logging
from typing import Any, Callable, Dict, MutableMapping, Optional

from fastapi import Request

from . import service
from .models import AuthResult

logger = logging.getLogger(__name__)

TOKEN_KEY = "auth_token"
USER_KEY = "auth_user"


class SessionState(str, enum.Enum):
    LOGGED_OUT = "logged_out"
    AUTHENTICATING = "authenticating"
    LOGGED_IN = "logged_in"


class AuthSession:
    def __init__(
        self,
        store: MutableMapping[str, Any],
        login_fn: Callable[..., AuthResult] = None,
    ):
        self._store = store
        self._login_fn = login_fn or service.login
        self._token: Optional[str] = None
        self._user: Optional[Dict[str, Any]] = None
        self.state = SessionState.LOGGED_OUT
        self.restore()

    # --- lecture ---

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._user

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.LOGGED_IN

    @property
    def is_admin(self) -> bool:
        return bool(self._user and self._user.get("role") == "admin")

    # --- cycle de vie ---

    def restore(self) -> SessionState:
        """Recharge token/user depuis le stockage (un user illisible efface la session)."""
        token = self._store.get(TOKEN_KEY)
        raw_user = self._store.get(USER_KEY)
        if not token or not raw_user:
            self._set_logged_out()
            return self.state
        try:
            user = json.loads(raw_user)
            if not isinstance(user, dict):
                raise ValueError("user non objet")
        except ValueError:
            logger.warning("auth.session stored user unreadable, clearing")
            self.logout()
            return self.state
        self._token, self._user = token, user
        self.state = SessionState.LOGGED_IN
        return self.state

    def login(self, email: str, password: str, country_code: Optional[str] = None) -> AuthResult:
        """
        Connexion via le service challenge–réponse.
        Persiste {token, user} uniquement en cas de succès; sinon la session reste déconnectée.
        """
        self.logout()
        self.state = SessionState.AUTHENTICATING
        try:
            result = self._login_fn(email, password, country_code)
        except Exception:
            self._set_logged_out()
            raise
        if result.success and result.token:
            self._store[TOKEN_KEY] = result.token
            self._store[USER_KEY] = json.dumps(result.user or {})
            self._token, self._user = result.token, result.user or {}
            self.state = SessionState.LOGGED_IN
        else:
            self._set_logged_out()
        return result

    def logout(self) -> None:
        """Efface token et user persistés. Idempotent."""
        self._store.pop(TOKEN_KEY, None)
        self._store.pop(USER_KEY, None)
        self._set_logged_out()

    def invalidate(self, validator: Callable[[str], bool] = None) -> bool:
        """
        Vérifie le jeton auprès du serveur; le supprime s'il est refusé.
        Retourne True si la session reste valide.
        """
        if not self.is_authenticated:
            return False
        validator = validator or service.validate_token
        if validator(self._token):
            return True
        logger.info("auth.session token rejected by server, logging out")
        self.logout()
        return False

    def _set_logged_out(self) -> None:
        self._token = None
        self._user = None
        self.state = SessionState.LOGGED_OUT


def get_auth_session(request: Request) -> AuthSession:
    """Dépendance FastAPI: une AuthSession par requête, adossée à request.session."""
    return AuthSession(request.session)
