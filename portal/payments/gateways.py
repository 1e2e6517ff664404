"""
Paramètres de redirection vers les passerelles de paiement externes.

Chaque passerelle est décrite par un GatewayProfile (URL, identifiant marchand, champs
spécifiques). build_redirect_params est une fonction pure: elle ne touche ni au réseau ni
à la session, ce qui permet de tester l'ensemble exact des clés envoyées à chaque fournisseur.
"""
import base64
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional

from portal.config import gateway_setting
from .models import PaymentIntent

DEFAULT_GATEWAY = "QNB"
DEFAULT_MERCHANT_ID = "DEFAULT_MERCHANT_ID"
REGISTRATION_UDF = "AUCTION_REGISTRATION"


@dataclass(frozen=True)
class RedirectContext:
    """Données hors PaymentIntent nécessaires au formulaire passerelle."""
    redirect_url: str
    cancel_url: str
    customer_email: str = ""
    customer_name: str = ""
    language: str = "EN"


@dataclass(frozen=True)
class RedirectPayload:
    """Formulaire à soumettre (POST pleine page) vers la passerelle."""
    action: str
    fields: Dict[str, str]
    method: str = "POST"


def generate_signature(data: str, key: str) -> str:
    """Signature attendue par le contrat existant: base64(data + key), alphanumérique, 32 caractères max."""
    encoded = base64.b64encode((data + key).encode("utf-8")).decode("ascii")
    return re.sub(r"[^a-zA-Z0-9]", "", encoded)[:32]


FieldBuilder = Callable[[PaymentIntent, RedirectContext], Optional[str]]


@dataclass(frozen=True)
class GatewayProfile:
    name: str
    url: str
    merchant_id: str
    extra_fields: Mapping[str, FieldBuilder] = field(default_factory=dict)


def _profile(name: str, url: str, merchant_id: str, extra_fields: Mapping[str, FieldBuilder] = None) -> GatewayProfile:
    return GatewayProfile(
        name=name,
        url=gateway_setting("GATEWAY_URL", name, url),
        merchant_id=gateway_setting("MERCHANT_ID", name, merchant_id),
        extra_fields=extra_fields or {},
    )


GATEWAYS: Dict[str, GatewayProfile] = {
    "KNET": _profile("KNET", "https://knet.com.kw/payment", "KNET_MERCHANT_ID", {
        "paymentid": lambda intent, ctx: intent.reference_number,
        "trackid": lambda intent, ctx: intent.gateway_transaction_id,
        "udf1": lambda intent, ctx: REGISTRATION_UDF,
    }),
    "OmanNet": _profile("OmanNet", "https://omannet.om/payment", DEFAULT_MERCHANT_ID),
    "CCAvenue": _profile("CCAvenue", "https://secure.ccavenue.ae/transaction", "CCAVENUE_MERCHANT_ID"),
    "CyberSource": _profile("CyberSource", "https://testsecureacceptance.cybersource.com/pay", "CYBERSOURCE_MERCHANT_ID"),
    "QNB": _profile("QNB", "https://qnbpay.qnb.com.qa/payment", "QNB_MERCHANT_ID", {
        "merchantRef": lambda intent, ctx: intent.reference_number,
        "customerEmail": lambda intent, ctx: ctx.customer_email,
        "customerName": lambda intent, ctx: ctx.customer_name,
        "signature": lambda intent, ctx: generate_signature(intent.reference_number, intent.amount),
    }),
}

# Passerelles affichant un compte à rebours avant la soumission automatique
COUNTDOWN_GATEWAYS = frozenset({"CCAvenue", "QNB"})


def get_profile(gateway_name: str) -> GatewayProfile:
    """
    Profil de la passerelle. Un nom inconnu retombe sur l'URL par défaut (QNB),
    l'identifiant marchand par défaut et le jeu de paramètres de base.
    """
    profile = GATEWAYS.get(gateway_name or "")
    if profile is not None:
        return profile
    default = GATEWAYS[DEFAULT_GATEWAY]
    return GatewayProfile(name=gateway_name or "", url=default.url, merchant_id=DEFAULT_MERCHANT_ID)


def build_redirect_params(intent: PaymentIntent, context: RedirectContext) -> Dict[str, str]:
    profile = get_profile(intent.gateway_name)
    params: Dict[str, str] = {
        "merchant_id": profile.merchant_id,
        "order_id": intent.reference_number,
        "amount": intent.amount,
        "currency": intent.currency,
        "redirect_url": context.redirect_url,
        "cancel_url": context.cancel_url,
        "language": context.language,
    }
    for key, build in profile.extra_fields.items():
        value = build(intent, context)
        params[key] = "" if value is None else str(value)
    return params


def build_redirect_payload(intent: PaymentIntent, context: RedirectContext) -> RedirectPayload:
    profile = get_profile(intent.gateway_name)
    return RedirectPayload(action=profile.url, fields=build_redirect_params(intent, context))
