"""Registry entity models."""

import unicodedata
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from cnpj_pull.identifiers import format_cnpj

# Registry status spellings meaning "active": word, numeric code, English
ACTIVE_STATUS_VALUES = frozenset({"ativa", "ativo", "02", "2", "active"})


def strip_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFD", value)
    return "".join(c for c in normalized if not unicodedata.combining(c))


def is_active_status(status) -> bool:
    """Whether a registry status value means the registration is active.

    Providers disagree on spelling: "ATIVA", "Ativa", "02", 2, "ativo".
    "INATIVA" and other statuses are not active.
    """
    if status is None:
        return False
    normalized = strip_accents(str(status)).strip().lower()
    if normalized in ACTIVE_STATUS_VALUES:
        return True
    return normalized.startswith("ativ")


class Partner(BaseModel):
    """Partner listed in the registry's ownership table (QSA)."""

    model_config = ConfigDict(frozen=True)

    name: str
    role: Optional[str] = None


class ResolvedEntity(BaseModel):
    """Authoritative registry data for one CNPJ."""

    model_config = ConfigDict(frozen=True)

    cnpj: str = Field(description="14-digit CNPJ, digits only")
    legal_name: Optional[str] = Field(default=None, description="Razao social")
    trade_name: Optional[str] = Field(default=None, description="Nome fantasia")
    size_band: Optional[str] = Field(default=None, description="Registry size classification (porte)")
    status: str = Field(default="", description="Registration status as reported by the provider")
    municipality: Optional[str] = None
    region: Optional[str] = Field(default=None, description="Two-letter state code (UF)")
    primary_activity: Optional[str] = Field(default=None, description="Primary CNAE description")

    # Contacts
    phones: tuple[str, ...] = ()
    email: Optional[str] = None

    # Registry detail
    address: Optional[str] = None
    zip_code: Optional[str] = None
    legal_nature: Optional[str] = None
    share_capital: Optional[float] = None
    opened_on: Optional[str] = None
    partners: tuple[Partner, ...] = ()

    source: str = Field(description="Registry provider that returned the data")
    resolved_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def formatted_cnpj(self) -> str:
        return format_cnpj(self.cnpj)

    @property
    def is_active(self) -> bool:
        return is_active_status(self.status)

    @property
    def display_name(self) -> str:
        return self.trade_name or self.legal_name or self.formatted_cnpj
