"""
Clients HTTP vers l'API marketplace amont.

- new_client(): client synchrone neuf, avec son propre jar de cookies. Utilisé une fois par
  tentative de connexion pour que le nonce (lié à la session serveur) et le login partagent
  la même session amont.
- get_client(): client synchrone partagé pour les appels sans état (inscription, statut). Son jar
  refuse les cookies amont pour qu'aucune session ne passe d'un utilisateur à l'autre.
- get_async_client(): client asynchrone partagé pour le polling du statut de paiement.
"""
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Optional
import httpx
from portal.config import API_BASE_URL, HTTP_TIMEOUT_SECONDS

_client: Optional[httpx.Client] = None
_async_client: Optional[httpx.AsyncClient] = None

DEFAULT_HEADERS = {"Accept": "application/json"}

def new_client() -> httpx.Client:
    return httpx.Client(base_url=API_BASE_URL, timeout=HTTP_TIMEOUT_SECONDS, headers=DEFAULT_HEADERS)

def stateless_cookies() -> CookieJar:
    """Jar qui refuse tout Set-Cookie: un client partagé ne porte jamais la session amont d'un utilisateur."""
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))

def get_client() -> httpx.Client:
    global _client
    if _client is None:
        _client = httpx.Client(
            base_url=API_BASE_URL, timeout=HTTP_TIMEOUT_SECONDS, headers=DEFAULT_HEADERS, cookies=stateless_cookies(),
        )
    return _client

def get_async_client() -> httpx.AsyncClient:
    global _async_client
    if _async_client is None:
        _async_client = httpx.AsyncClient(
            base_url=API_BASE_URL, timeout=HTTP_TIMEOUT_SECONDS, headers=DEFAULT_HEADERS, cookies=stateless_cookies(),
        )
    return _async_client

async def close_clients() -> None:
    """Ferme les clients partagés (appelé au shutdown du lifespan)."""
    global _client, _async_client
    if _client is not None:
        _client.close()
        _client = None
    if _async_client is not None:
        await _async_client.aclose()
        _async_client = None
