"""
Modèles du paiement d'inscription: statut canonique, PaymentIntent, retour passerelle.

PaymentIntent est le seul état qui survit à la navigation vers la passerelle: il est
sérialisé (to_dict) dans le stockage de session avec les noms de champs de l'API amont.
"""
import enum
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from portal.errors import PaymentStateError


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    UNKNOWN = "UNKNOWN"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    PaymentStatus.SUCCESS,
    PaymentStatus.FAILED,
    PaymentStatus.CANCELLED,
    PaymentStatus.EXPIRED,
})


def format_amount(value: Any) -> str:
    """Montant tel que la passerelle l'attend: 10.0 -> "10", 12.5 -> "12.5", None -> ""."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass
class PaymentIntent:
    reference_number: str
    amount: str
    currency: str
    gateway_name: str
    gateway_transaction_id: Optional[str] = None
    status: PaymentStatus = PaymentStatus.PENDING
    started_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if not self.reference_number:
            raise ValueError("reference_number requis")
        self.status = PaymentStatus(self.status)

    def __setattr__(self, name, value):
        # La référence est la seule clé de corrélation avec la passerelle: immuable une fois posée
        if name == "reference_number" and "reference_number" in self.__dict__:
            raise AttributeError("reference_number est immuable")
        super().__setattr__(name, value)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition(self, new_status: PaymentStatus) -> "PaymentIntent":
        """
        Applique un nouveau statut en respectant la monotonie:
        - terminal -> même terminal: sans effet
        - terminal -> autre: PaymentStateError
        - UNKNOWN n'écrase jamais un statut connu
        """
        new_status = PaymentStatus(new_status)
        if self.is_terminal:
            if new_status != self.status:
                raise PaymentStateError(f"Paiement {self.reference_number} déjà {self.status.value}")
            return self
        if new_status == PaymentStatus.UNKNOWN:
            return self
        self.status = new_status
        return self

    def expired(self, timeout_seconds: float, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return now - self.started_at > timeout_seconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paymentRefNo": self.reference_number,
            "amount": self.amount,
            "currency": self.currency,
            "gatewayName": self.gateway_name,
            "gatewayTransactionId": self.gateway_transaction_id,
            "status": self.status.value,
            "startTime": self.started_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentIntent":
        """Accepte la forme stockée (to_dict) et la réponse amont (data de register-with-payment)."""
        raw_status = str(data.get("status") or PaymentStatus.PENDING.value).upper()
        status = PaymentStatus(raw_status) if raw_status in PaymentStatus.__members__ else PaymentStatus.PENDING
        return cls(
            reference_number=str(data.get("paymentRefNo") or data.get("referenceNumber") or ""),
            amount=format_amount(data.get("amount")),
            currency=str(data.get("currency") or ""),
            gateway_name=str(data.get("gatewayName") or ""),
            gateway_transaction_id=data.get("gatewayTransactionId") or None,
            status=status,
            started_at=float(data.get("startTime") or time.time()),
        )


@dataclass
class GatewayCallback:
    payment_ref_no: str
    status: PaymentStatus
    raw_status: Optional[str] = None
    transaction_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class PaymentOutcome:
    """Issue finale publiée aux abonnés (page d'inscription) après réconciliation."""
    reference_number: Optional[str]
    status: PaymentStatus
    intent: Optional[PaymentIntent] = None
    callback: Optional[GatewayCallback] = None
    message: Optional[str] = None
