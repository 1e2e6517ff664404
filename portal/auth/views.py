from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Dict, Any

from portal.errors import AuthError
from portal.utils.rate_limit import optional_rate_limit
from portal.utils.security import require_user
from .session import AuthSession, get_auth_session

# --- API Router (/api/v1/auth) ---

api_router = APIRouter(prefix="/api/v1/auth", tags=["Auth API"])

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)
    country_code: Optional[str] = None

@api_router.post("/login", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
def api_login(req: LoginRequest, auth: AuthSession = Depends(get_auth_session)):
    """Connexion challenge–réponse (API JSON).
    - Le mot de passe est haché avec un nonce serveur frais avant envoi, jamais transmis en clair.
    - Succès: token et user persistés dans la session, renvoyés au client.
    - Échec: AuthError typée (401 identifiants invalides, 503 réseau avec recovery=retry).
    """
    result = auth.login(req.email, req.password, req.country_code)
    if not result.success:
        raise result.to_error()
    return {"token": result.token, "token_type": "bearer", "user": result.user}

@api_router.post("/logout")
def api_logout(auth: AuthSession = Depends(get_auth_session)):
    auth.logout()
    return {"message": "Déconnexion réussie"}

@api_router.get("/me")
def api_me(validate: bool = False, auth: AuthSession = Depends(get_auth_session), user: Dict[str, Any] = Depends(require_user)):
    """Utilisateur courant. validate=true revérifie le jeton auprès du serveur et déconnecte s'il est refusé."""
    if validate and not auth.invalidate():
        raise AuthError(AuthError.INVALID_CREDENTIALS, "Session expirée, veuillez vous reconnecter")
    return {
        "id": user.get("id"),
        "username": user.get("username"),
        "email": user.get("email"),
        "role": user.get("role"),
        "is_admin": auth.is_admin,
        "country_code": user.get("country_code"),
    }
