from typing import Any, Dict
import httpx

# --- API amont (auth) ---

def fetch_random_key(http: httpx.Client) -> Dict[str, Any]:
    """Nonce de session: GET /session/random-key -> {success, randomKey}.
    - Le client http doit être celui utilisé ensuite pour /auth/login (cookie de session amont)
    """
    resp = http.get("/session/random-key")
    resp.raise_for_status()
    return resp.json()

def post_login(http: httpx.Client, email_id: str, hashed_password: str, country_code: str) -> httpx.Response:
    """Connexion: POST /auth/login avec {emailId, password: <hex digest>, countryCode}.
    Retourne la réponse brute: un 401/400 porte aussi un corps {success: false, message}.
    """
    return http.post(
        "/auth/login",
        json={"emailId": email_id, "password": hashed_password, "countryCode": country_code},
    )

def get_token_validity(http: httpx.Client, token: str) -> Dict[str, Any]:
    """Validation de jeton: GET /auth/validate (Bearer) -> {status, data: {valid}}."""
    resp = http.get("/auth/validate", headers={"Authorization": f"Bearer {token}"})
    resp.raise_for_status()
    return resp.json()
