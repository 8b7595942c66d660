"""
Verificación de firmas de webhooks (colaborador de pagos).

La firma es HMAC-SHA256 en hexadecimal del cuerpo crudo, con el secreto
compartido PAYMENT_WEBHOOK_SECRET.
"""
import hashlib
import hmac
import logging

from fastapi import HTTPException, Request

from .config import get_settings

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Payment-Signature"


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


async def verify_payment_signature(request: Request) -> bytes:
    """Dependencia FastAPI: devuelve el cuerpo si la firma es válida, 401 si no."""
    body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER, "")
    expected = compute_hmac_sha256(get_settings().payment_webhook_secret, body)
    if not constant_time_compare(signature.strip().lower(), expected):
        logger.warning(f"Firma de webhook de pagos inválida desde {request.client.host if request.client else '?'}")
        raise HTTPException(status_code=401, detail="Firma inválida")
    return body
