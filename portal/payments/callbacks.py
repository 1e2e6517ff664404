"""
Normalisation des retours passerelle (query string hétérogène selon le fournisseur).

Les noms de paramètres et le vocabulaire de statut sont des tables: ajouter une passerelle
revient à compléter CALLBACK_FIELDS / STATUS_CANONICAL, sans nouveau code.
"""
import logging
from typing import Any, Mapping, Optional, Sequence, Tuple

from .models import GatewayCallback, PaymentStatus

logger = logging.getLogger(__name__)

# Ordre de priorité: le premier paramètre non vide l'emporte
CALLBACK_FIELDS: Mapping[str, Tuple[str, ...]] = {
    "payment_ref_no": ("paymentRefNo", "orderid", "merchantRef"),
    "status": ("status", "result", "paymentStatus"),
    "transaction_id": ("transactionId", "trackid", "paymentid"),
    "error_code": ("errorCode", "error"),
    "error_message": ("errorMessage", "errorText"),
}

STATUS_CANONICAL: Mapping[str, PaymentStatus] = {
    "CAPTURED": PaymentStatus.SUCCESS,
    "SUCCESS": PaymentStatus.SUCCESS,
    "APPROVED": PaymentStatus.SUCCESS,
    "COMPLETED": PaymentStatus.SUCCESS,
    "FAILED": PaymentStatus.FAILED,
    "DECLINED": PaymentStatus.FAILED,
    "ERROR": PaymentStatus.FAILED,
    "CANCELLED": PaymentStatus.CANCELLED,
    "CANCELED": PaymentStatus.CANCELLED,
    "PENDING": PaymentStatus.PENDING,
    "EXPIRED": PaymentStatus.EXPIRED,
}

def _first(query: Mapping[str, Any], names: Sequence[str]) -> Optional[str]:
    for name in names:
        value = query.get(name)
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        # valeur renvoyée telle que reçue; le blanc sert seulement à passer au nom suivant
        if value is not None and str(value).strip():
            return str(value)
    return None

def canonical_status(raw: Optional[str]) -> Tuple[PaymentStatus, Optional[str]]:
    """
    Retourne (statut canonique, statut brut en majuscules).
    Un statut absent ou inconnu donne UNKNOWN; la valeur brute est conservée pour l'affichage.
    """
    if not raw:
        return PaymentStatus.UNKNOWN, None
    upper = raw.strip().upper()
    return STATUS_CANONICAL.get(upper, PaymentStatus.UNKNOWN), upper

def parse_callback(query: Mapping[str, Any]) -> Optional[GatewayCallback]:
    """
    Extrait un GatewayCallback d'une query string de retour passerelle.
    None si et seulement si aucun paramètre de référence reconnu n'est présent.
    """
    values = {key: _first(query, names) for key, names in CALLBACK_FIELDS.items()}
    ref = values["payment_ref_no"]
    if not ref:
        logger.warning("payments.callback no reference in params=%s", sorted(query.keys()))
        return None
    status, raw_status = canonical_status(values["status"])
    return GatewayCallback(
        payment_ref_no=ref,
        status=status,
        raw_status=raw_status,
        transaction_id=values["transaction_id"],
        error_code=values["error_code"],
        error_message=values["error_message"],
    )
