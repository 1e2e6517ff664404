"""
Module 'payments' (feature-first): point d'entrée public.
Réunit modèles du PaymentIntent, paramètres passerelle, normalisation des retours, persistance
en session et réconciliation.
"""

from .models import PaymentStatus, PaymentIntent, GatewayCallback, PaymentOutcome, format_amount
from .gateways import (
    GATEWAYS,
    GatewayProfile,
    RedirectContext,
    RedirectPayload,
    generate_signature,
    get_profile,
    build_redirect_params,
    build_redirect_payload,
)
from .callbacks import CALLBACK_FIELDS, STATUS_CANONICAL, canonical_status, parse_callback
from .storage import PaymentIntentStore, PENDING_KEY, ACTIVE_KEY
from .adapter import PaymentGatewayAdapter
from .reconciler import PaymentChannel, PollHandle, PaymentReconciler

__all__ = [
    # models
    "PaymentStatus",
    "PaymentIntent",
    "GatewayCallback",
    "PaymentOutcome",
    "format_amount",
    # gateways
    "GATEWAYS",
    "GatewayProfile",
    "RedirectContext",
    "RedirectPayload",
    "generate_signature",
    "get_profile",
    "build_redirect_params",
    "build_redirect_payload",
    # callbacks
    "CALLBACK_FIELDS",
    "STATUS_CANONICAL",
    "canonical_status",
    "parse_callback",
    # storage
    "PaymentIntentStore",
    "PENDING_KEY",
    "ACTIVE_KEY",
    # adapter / reconciler
    "PaymentGatewayAdapter",
    "PaymentChannel",
    "PollHandle",
    "PaymentReconciler",
]
