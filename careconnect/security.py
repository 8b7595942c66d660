from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError

from .config import get_settings
from .services.lifecycle import ActorContext

ALGO = "HS256"
# Las cuentas y el login viven en el servicio de identidad; aquí solo se validan sus tokens
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def create_access_token(user_id: str, expires_hours: Optional[int] = None) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(hours=expires_hours or settings.jwt_expires_hours)
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGO)


def decode_user_id(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, get_settings().jwt_secret, algorithms=[ALGO])
    except JWTError:
        return None
    sub = payload.get("sub")
    return str(sub) if sub else None


async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> str:
    user_id = decode_user_id(token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Token inválido")
    return user_id


def get_now() -> datetime:
    return datetime.now(get_settings().tz)


async def get_current_actor(
    user_id: str = Depends(get_current_user_id),
    now: datetime = Depends(get_now),
) -> ActorContext:
    """Identidad y hora de la petición, pasadas explícitamente al núcleo."""
    return ActorContext(actor_id=user_id, now=now)
