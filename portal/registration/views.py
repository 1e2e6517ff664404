from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, EmailStr

from portal.utils.rate_limit import optional_rate_limit
from . import captcha
from .models import Attachment, RegistrationDraft
from .validators import MAX_ATTACHMENT_BYTES
from .service import RegistrationCoordinator, check_email_availability, get_coordinator

api_router = APIRouter(prefix="/api/v1/registration", tags=["Registration API"])

class TicketRequest(BaseModel):
    ticket: str

class CancelRequest(BaseModel):
    ticket: Optional[str] = None

@api_router.get("/captcha")
def get_captcha(request: Request):
    """Nouveau défi captcha, servi uniquement en image SVG (jamais en texte)."""
    text = captcha.generate(request.session)
    return Response(
        content=captcha.render_svg(text),
        media_type="image/svg+xml",
        headers={"Cache-Control": "no-store"},
    )

async def _attachment(
    upload: Optional[UploadFile],
    limit: int = MAX_ATTACHMENT_BYTES,
    chunk_size: int = 64 * 1024,
) -> Optional[Attachment]:
    """Pièce jointe sans charger le fichier en mémoire; la taille mesurée s'arrête juste au-delà de la limite."""
    if upload is None or not upload.filename:
        return None
    size = upload.size
    if size is None:
        size = 0
        while size <= limit:
            chunk = await upload.read(chunk_size)
            if not chunk:
                break
            size += len(chunk)
    return Attachment(filename=upload.filename, content_type=upload.content_type or "", size=size)

@api_router.post("", dependencies=[Depends(optional_rate_limit(times=5, seconds=60))])
async def submit_registration(
    name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    phone_number: str = Form(""),
    user_type: str = Form("Individual"),
    address1: str = Form(""),
    address2: str = Form(""),
    city: str = Form(""),
    post_code: str = Form(""),
    civil_id: str = Form(""),
    payment_method: str = Form("Credit Card"),
    captcha_answer: str = Form("", alias="captcha"),
    agree_terms: bool = Form(False),
    country_code: Optional[str] = Form(None),
    civil_id_copy: Optional[UploadFile] = File(None),
    coordinator: RegistrationCoordinator = Depends(get_coordinator),
):
    """
    Soumission du formulaire d'inscription (multipart).
    - 422 ValidationError: {errors: {champ: message}} pour tous les champs invalides
    - 422 CaptchaMismatch: le captcha est régénéré (recharger /captcha)
    - 200: {ticket, disclaimer}; le paiement ne démarre qu'après /accept
    """
    draft = RegistrationDraft(
        name=name,
        email=email,
        password=password,
        confirm_password=confirm_password,
        phone_number=phone_number,
        user_type=user_type,
        address1=address1,
        address2=address2,
        city=city,
        post_code=post_code,
        civil_id=civil_id,
        civil_id_copy=await _attachment(civil_id_copy),
        payment_method=payment_method,
        captcha=captcha_answer,
        agree_terms=agree_terms,
        country_code=country_code,
    )
    return coordinator.submit(draft)

@api_router.post("/accept")
def accept_disclaimer(req: TicketRequest, coordinator: RegistrationCoordinator = Depends(get_coordinator)):
    """Avertissement accepté: initie le paiement (303 vers /payment/gateway) ou 502 sans rien persister."""
    return coordinator.accept(req.ticket)

@api_router.post("/cancel")
def cancel_registration(req: CancelRequest, coordinator: RegistrationCoordinator = Depends(get_coordinator)):
    coordinator.cancel(req.ticket)
    return {"message": "Inscription annulée"}

@api_router.get("/email-available")
def email_available(email: EmailStr):
    return {"email": email, "available": check_email_availability(str(email))}
