"""
Autenticación de Control de Gastos.

Endpoints:
- POST /api/auth/login  -> devuelve access_token (JWT)
- GET  /api/auth/me     -> datos del usuario autenticado

Reglas:
- La aplicación tiene un único dueño: el login solo pide la contraseña
  configurada en APP_PASSWORD.
- Token tipo Bearer (Authorization: Bearer <token>) con sub="owner".
- APP_PASSWORD puede ser:
    * un hash bcrypt (empieza por "$2") -> se verifica con passlib.
    * texto plano -> comparación directa.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError
from pydantic import BaseModel, Field

from backend.app.core.config import settings

logger = logging.getLogger(__name__)

OWNER_SUBJECT = "owner"

# ---------- Router ----------
router = APIRouter(prefix="/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)


class LoginIn(BaseModel):
    password: str = Field(..., min_length=1)


def create_access_token(sub: str, minutes: int | None = None) -> str:
    """
    JWT con sub, iat y exp (iat + minutes).
    """
    now = datetime.now(tz=timezone.utc)
    exp = now + timedelta(minutes=minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {"sub": sub, "iat": int(now.timestamp()), "exp": int(exp.timestamp())}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_password(plain: str, stored: str) -> bool:
    if not stored:
        return False
    if stored.startswith("$2"):
        from passlib.hash import bcrypt  # solo se necesita con hashes bcrypt
        try:
            return bcrypt.verify(plain, stored)
        except ValueError:
            logger.warning("[auth] APP_PASSWORD no es un hash bcrypt válido")
            return False
    return plain == stored


# =========================================================
# Endpoints
# =========================================================
@router.post("/login")
def login(data: LoginIn):
    """
    Devuelve access_token, token_type ("Bearer") y expires_in (segundos).
    """
    if not settings.APP_PASSWORD:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="APP_PASSWORD no está configurada",
        )

    if not verify_password(data.password, settings.APP_PASSWORD):
        logger.info("[auth] login rechazado")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciales inválidas",
        )

    token = create_access_token(OWNER_SUBJECT)
    return {
        "access_token": token,
        "token_type": "Bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


def require_user(creds: HTTPAuthorizationCredentials = Security(security)) -> str:
    """
    Dependencia que obliga a estar autenticado. Devuelve el 'sub' del token.
    """
    if not creds or creds.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Falta Bearer token",
        )

    try:
        payload = jwt.decode(creds.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        # el cliente debe volver a hacer login
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="token_expired",
        )
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido",
        )

    sub = payload.get("sub")
    if sub != OWNER_SUBJECT:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token inválido",
        )
    return sub


@router.get("/me")
def me(user: str = Security(require_user)):
    return {"user": user, "authenticated": True}
