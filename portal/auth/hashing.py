"""
Hachage du mot de passe pour le protocole de connexion challenge–réponse.

Le serveur délivre un nonce (randomKey) par tentative; le client envoie
SHA1(password + nonce) en hexadécimal minuscule, jamais le mot de passe en clair.
Le schéma est celui du contrat existant côté serveur (SHA-1, non salé au-delà du nonce).
"""
import hashlib

DIGEST_HEX_LENGTH = 40

def hash_credential(password: str, nonce: str) -> str:
    """
    Combine password et nonce en credential filaire.
    - Encodage UTF-8 avant digest (les caractères multi-octets hachent comme le client de référence)
    - TypeError si une entrée n'est pas une chaîne, ValueError si password ou nonce est vide
    """
    if not isinstance(password, str) or not isinstance(nonce, str):
        raise TypeError("password et nonce doivent être des chaînes")
    if not password:
        raise ValueError("Mot de passe vide")
    if not nonce:
        raise ValueError("Nonce vide")
    return hashlib.sha1((password + nonce).encode("utf-8")).hexdigest()
