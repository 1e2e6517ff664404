"""
Taxonomie d'erreurs du portail (connexion + inscription avec paiement).

Chaque erreur porte:
- code: identifiant stable pour le front (ex: "captcha_mismatch")
- message: texte affichable à l'utilisateur
- recovery: action de reprise proposée (retry, reenter_captcha, restart_registration, ...)
- status_code: code HTTP utilisé par le gestionnaire d'exceptions (app_setup.exceptions)
"""
from typing import Dict, Optional

# Actions de reprise exposées au front
RECOVERY_FIX_FIELDS = "fix_fields"
RECOVERY_RETRY = "retry"
RECOVERY_REENTER_CREDENTIALS = "reenter_credentials"
RECOVERY_REENTER_CAPTCHA = "reenter_captcha"
RECOVERY_RESTART_REGISTRATION = "restart_registration"


class PortalError(Exception):
    code = "portal_error"
    message = "Une erreur est survenue"
    recovery = RECOVERY_RETRY
    status_code = 400

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message

    def to_dict(self) -> Dict[str, object]:
        return {"detail": self.message, "code": self.code, "recovery": self.recovery}


class ValidationError(PortalError):
    """Erreurs de saisie champ par champ, affichées en ligne dans le formulaire."""
    code = "validation_error"
    message = "Certains champs sont invalides"
    recovery = RECOVERY_FIX_FIELDS
    status_code = 422

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        super().__init__(message)
        self.errors = dict(errors)

    def to_dict(self) -> Dict[str, object]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class AuthError(PortalError):
    """
    Échec de connexion. kind distingue:
    - invalid_credentials: l'utilisateur doit ressaisir ses identifiants
    - network: le serveur est injoignable, on propose de réessayer
    """
    INVALID_CREDENTIALS = "invalid_credentials"
    NETWORK = "network"

    code = "auth_error"

    def __init__(self, kind: str, message: Optional[str] = None):
        self.kind = kind
        if kind == self.INVALID_CREDENTIALS:
            self.recovery = RECOVERY_REENTER_CREDENTIALS
            self.status_code = 401
            default = "Identifiants invalides"
        else:
            self.recovery = RECOVERY_RETRY
            self.status_code = 503
            default = "Serveur d'authentification injoignable, veuillez réessayer"
        super().__init__(message or default)
        self.code = f"auth_{kind}"


class ChallengeUnavailable(AuthError):
    """Le serveur n'a pas délivré de nonce (randomKey) pour cette tentative."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(AuthError.NETWORK, message or "Impossible d'obtenir la clé de connexion du serveur")
        self.code = "challenge_unavailable"


class CaptchaMismatch(PortalError):
    code = "captcha_mismatch"
    message = "Le captcha ne correspond pas"
    recovery = RECOVERY_REENTER_CAPTCHA
    status_code = 422


class GatewayInitiationError(PortalError):
    """Le formulaire est valide mais le paiement n'a pas pu être initié (aucun PaymentIntent créé)."""
    code = "gateway_initiation_error"
    message = "Le paiement n'a pas pu être initié, veuillez réessayer"
    recovery = RECOVERY_RETRY
    status_code = 502


class GatewayCallbackError(PortalError):
    """Retour passerelle sans référence exploitable: page d'échec, pas de nouvelle tentative automatique."""
    code = "gateway_callback_error"
    message = "Retour de la passerelle de paiement invalide"
    recovery = RECOVERY_RESTART_REGISTRATION
    status_code = 400


class PaymentExpired(PortalError):
    code = "payment_expired"
    message = "Le délai de paiement est dépassé, veuillez recommencer l'inscription"
    recovery = RECOVERY_RESTART_REGISTRATION
    status_code = 410


class PaymentStateError(PortalError):
    """Transition de statut interdite (un statut terminal ne revient jamais en arrière)."""
    code = "payment_state_error"
    message = "Transition de statut de paiement invalide"
    recovery = RECOVERY_RESTART_REGISTRATION
    status_code = 409


class RegistrationNotFound(PortalError):
    """Ticket d'inscription inconnu ou expiré (formulaire à ressoumettre)."""
    code = "registration_not_found"
    message = "Inscription introuvable ou expirée, veuillez recommencer"
    recovery = RECOVERY_RESTART_REGISTRATION
    status_code = 404


class UpstreamUnavailable(PortalError):
    code = "upstream_unavailable"
    message = "Service indisponible, veuillez réessayer"
    recovery = RECOVERY_RETRY
    status_code = 503
