"""
Règles de validation du formulaire d'inscription.

Chaque champ a une liste ordonnée de règles; la première en échec donne le message du champ.
validate_draft vérifie tous les champs et renvoie toutes les erreurs ensemble ({champ: message}).
"""
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Pattern

from .models import Attachment, RegistrationDraft

NAME_RE = re.compile(r"^[A-Za-z\s]+$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_RE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@#$%]).{8,}$")
PHONE_RE = re.compile(r"^[0-9]{8,15}$")
CITY_RE = re.compile(r"^[A-Za-z\s]+$")
POST_CODE_RE = re.compile(r"^[0-9]{4,10}$")
CIVIL_ID_RE = re.compile(r"^[A-Za-z0-9]{8,20}$")
CAPTCHA_RE = re.compile(r"^[A-Za-z0-9]{6}$")

MAX_ATTACHMENT_BYTES = 10 * 1024 * 1024
ALLOWED_ATTACHMENT_TYPES = frozenset({
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})

Check = Callable[[Any, RegistrationDraft], bool]


@dataclass(frozen=True)
class Rule:
    message: str
    required: bool = False
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[Pattern[str]] = None
    check: Optional[Check] = None


def _is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def _attachment_type_ok(value: Attachment, draft: RegistrationDraft) -> bool:
    return (value.content_type or "").lower() in ALLOWED_ATTACHMENT_TYPES


def _attachment_size_ok(value: Attachment, draft: RegistrationDraft) -> bool:
    return 0 < value.size <= MAX_ATTACHMENT_BYTES


REGISTRATION_RULES: Dict[str, List[Rule]] = {
    "name": [
        Rule("Le nom est requis", required=True),
        Rule("Le nom doit contenir au moins 2 caractères", min_length=2),
        Rule("Le nom ne peut pas dépasser 100 caractères", max_length=100),
        Rule("Le nom ne peut contenir que des lettres et des espaces", pattern=NAME_RE),
    ],
    "email": [
        Rule("L'email est requis", required=True),
        Rule("Format d'email invalide", pattern=EMAIL_RE),
    ],
    "password": [
        Rule("Le mot de passe est requis", required=True),
        Rule("Le mot de passe doit contenir au moins 8 caractères", min_length=8),
        Rule(
            "Le mot de passe doit contenir une majuscule, une minuscule, un chiffre et un caractère spécial (@#$%)",
            pattern=PASSWORD_RE,
        ),
    ],
    "confirm_password": [
        Rule("La confirmation du mot de passe est requise", required=True),
        Rule("Les mots de passe ne correspondent pas", check=lambda v, d: v == d.password),
    ],
    "phone_number": [
        Rule("Le numéro de téléphone est requis", required=True),
        Rule("Le numéro de téléphone doit contenir entre 8 et 15 chiffres", pattern=PHONE_RE),
    ],
    "user_type": [
        Rule("Le type d'utilisateur est requis", required=True),
        Rule("Le type d'utilisateur doit être Individual ou Business", check=lambda v, d: v in ("Individual", "Business")),
    ],
    "address1": [
        Rule("L'adresse (ligne 1) est requise", required=True),
        Rule("L'adresse (ligne 1) ne peut pas dépasser 200 caractères", max_length=200),
    ],
    "address2": [
        Rule("L'adresse (ligne 2) ne peut pas dépasser 200 caractères", max_length=200),
    ],
    "city": [
        Rule("La ville est requise", required=True),
        Rule("La ville ne peut pas dépasser 50 caractères", max_length=50),
        Rule("La ville ne peut contenir que des lettres et des espaces", pattern=CITY_RE),
    ],
    "post_code": [
        Rule("Le code postal est requis", required=True),
        Rule("Le code postal doit contenir entre 4 et 10 chiffres", pattern=POST_CODE_RE),
    ],
    "civil_id": [
        Rule("Le numéro d'identité civile est requis", required=True),
        Rule("Le numéro d'identité civile doit contenir au moins 8 caractères", min_length=8),
        Rule("Le numéro d'identité civile ne peut pas dépasser 20 caractères", max_length=20),
        Rule("Le numéro d'identité civile doit être alphanumérique", pattern=CIVIL_ID_RE),
    ],
    "civil_id_copy": [
        Rule("La copie de la pièce d'identité est requise", required=True),
        Rule("Type de fichier non autorisé (pdf, jpeg, png, gif, doc, docx)", check=_attachment_type_ok),
        Rule("Le fichier ne doit pas dépasser 10 Mo", check=_attachment_size_ok),
    ],
    "payment_method": [
        Rule("Le moyen de paiement est requis", required=True),
        Rule("Le moyen de paiement doit être Credit Card ou Debit Card", check=lambda v, d: v in ("Credit Card", "Debit Card")),
    ],
    "captcha": [
        Rule("Le captcha est requis", required=True),
        Rule("Format de captcha invalide", pattern=CAPTCHA_RE),
    ],
    "agree_terms": [
        Rule("Vous devez accepter les conditions générales", required=True),
    ],
}


def validate_field(value: Any, rules: List[Rule], draft: RegistrationDraft) -> Optional[str]:
    """Message de la première règle en échec, None si le champ est valide."""
    for rule in rules:
        if rule.required and _is_empty(value):
            return rule.message
        if _is_empty(value):
            continue
        text = value if isinstance(value, str) else str(value)
        if rule.min_length is not None and len(text) < rule.min_length:
            return rule.message
        if rule.max_length is not None and len(text) > rule.max_length:
            return rule.message
        if rule.pattern is not None and not rule.pattern.fullmatch(text):
            return rule.message
        if rule.check is not None and not rule.check(value, draft):
            return rule.message
    return None


def validate_draft(draft: RegistrationDraft) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for field_name, rules in REGISTRATION_RULES.items():
        message = validate_field(getattr(draft, field_name), rules, draft)
        if message:
            errors[field_name] = message
    return errors
