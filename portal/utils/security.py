from fastapi import HTTPException, Depends
from typing import Dict, Any
from portal.auth.session import AuthSession, get_auth_session

def get_current_user(auth: AuthSession = Depends(get_auth_session)) -> Dict[str, Any]:
    if not auth.is_authenticated:
        raise HTTPException(status_code=401, detail="Non authentifié")
    user = dict(auth.user or {})
    user["token"] = auth.token
    return user

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user
