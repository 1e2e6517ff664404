from typing import Dict, Optional

from pydantic import BaseModel, Field

USER_TYPE_CODES: Dict[str, str] = {"Individual": "I", "Business": "B"}

PAYMENT_METHOD_CODES: Dict[str, str] = {
    "Credit Card": "CC",
    "Debit Card": "DC",
    "KNET": "KNET",
    "Bank Transfer": "BT",
}


class Attachment(BaseModel):
    """Copie de la pièce d'identité: seules les métadonnées sont conservées."""
    filename: str = ""
    content_type: str = ""
    size: int = 0


class RegistrationDraft(BaseModel):
    """
    Formulaire d'inscription tel que saisi. Aucune contrainte ici: la validation
    exhaustive (tous les champs, première règle en échec par champ) est faite par validators.
    """
    name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""
    phone_number: str = ""
    user_type: str = "Individual"
    address1: str = ""
    address2: str = ""
    city: str = ""
    post_code: str = ""
    civil_id: str = ""
    civil_id_copy: Optional[Attachment] = None
    payment_method: str = "Credit Card"
    captcha: str = ""
    agree_terms: bool = False
    country_code: Optional[str] = Field(default=None)

    def to_payment_form(self) -> Dict[str, str]:
        """Champs form-urlencoded attendus par POST /users/register-with-payment."""
        pay_mode = PAYMENT_METHOD_CODES.get(self.payment_method, "CC")
        return {
            "customername": self.name,
            "email": self.email,
            "password": self.password,
            "reenter": self.confirm_password,
            "phoneno": self.phone_number,
            "usertype": USER_TYPE_CODES.get(self.user_type, "B"),
            "Address1": self.address1,
            "Address2": self.address2 or "",
            "city": self.city,
            "pobox": self.post_code,
            "civilid": self.civil_id,
            "payMode": pay_mode,
            "pMode": pay_mode,
            "checkbox": "on" if self.agree_terms else "",
            "captchaAnsReg": self.captcha,
        }
