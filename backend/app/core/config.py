# backend/app/core/config.py
"""
Configuración central del backend de Control de Gastos.

Objetivos:
1) Nada de credenciales en el código: todo sale de variables de entorno / .env.
2) Una única fuente de verdad para la BD: DATABASE_URL.
3) Normalizar la URL de Postgres (driver psycopg 3, sslmode=require en remoto).
   Las URLs sqlite se respetan tal cual (desarrollo local y tests).

NOTA práctica:
- No pongas valores entre comillas en el panel del hosting.
  Si pones DATABASE_URL="postgresql://..." las comillas forman parte del valor;
  igualmente las quitamos aquí por si acaso.
"""

from __future__ import annotations

import re
from typing import List, Optional
from urllib.parse import urlparse

from pydantic_settings import BaseSettings


_LOCAL_HOSTS = ("localhost", "127.0.0.1", "db", "postgres")


def _strip_wrapping_quotes(value: str) -> str:
    """
    Elimina comillas envolventes. Ej: '"abc"' -> 'abc'
    """
    v = (value or "").strip()
    if len(v) >= 2 and ((v[0] == v[-1] == '"') or (v[0] == v[-1] == "'")):
        return v[1:-1].strip()
    return v


def _ensure_psycopg_driver(url: str) -> str:
    """
    Fuerza psycopg 3 en SQLAlchemy:
    - postgres://...            -> postgresql+psycopg://...
    - postgresql://...          -> postgresql+psycopg://...
    - postgresql+psycopg2://... -> postgresql+psycopg://...
    """
    u = url.strip()
    u = re.sub(r"^postgres://", "postgresql://", u)
    u = re.sub(r"^postgresql\+psycopg2://", "postgresql+psycopg://", u)
    u = re.sub(r"^postgresql://", "postgresql+psycopg://", u)
    return u


def _append_query_param(url: str, key: str, value: str) -> str:
    """Añade un query param si no existe ya."""
    if re.search(rf"(^|[?&]){re.escape(key)}=", url):
        return url
    sep = "&" if "?" in url else "?"
    return f"{url}{sep}{key}={value}"


def _csv_to_list(value: str) -> List[str]:
    """'a,b,c' -> ['a','b','c'] ignorando vacíos."""
    v = (value or "").strip()
    if not v:
        return []
    return [x.strip() for x in v.split(",") if x.strip()]


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


class Settings(BaseSettings):
    """
    Ajustes de la aplicación (leídos de entorno y de .env).
    """

    # ---- entorno general
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # ---- seguridad / JWT
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    # Contraseña única de la aplicación (texto plano o hash bcrypt "$2...")
    APP_PASSWORD: str = ""

    # ---- CORS: CSV "http://a,http://b" (vacío = "*")
    CORS_ORIGINS: str = ""

    # ---- base de datos
    DATABASE_URL: Optional[str] = None
    DB_USE_NULLPOOL: bool = False
    DB_RETRY_ATTEMPTS: int = 3
    DB_RETRY_INITIAL_DELAY: float = 1.0

    # ---- features
    RUN_MIGRATIONS_ON_STARTUP: bool = False
    DEFAULT_FUND_NAME: str = "Disponible"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def cors_origins_list(self) -> List[str]:
        return _csv_to_list(self.CORS_ORIGINS) or ["*"]

    def resolve_database_url(self) -> str:
        """
        Devuelve la URL final de la BD.

        - sqlite: sin tocar.
        - postgres: driver psycopg y sslmode=require salvo en hosts locales.
        """
        chosen = _strip_wrapping_quotes(self.DATABASE_URL or "")
        if not chosen:
            raise RuntimeError("No hay URL de base de datos. Define DATABASE_URL.")

        if is_sqlite_url(chosen):
            return chosen

        chosen = _ensure_psycopg_driver(chosen)
        host = (urlparse(chosen).hostname or "").lower()
        if host not in _LOCAL_HOSTS:
            chosen = _append_query_param(chosen, "sslmode", "require")
        return chosen


# Instancia global
settings = Settings()
