"""Registry providers returning authoritative CNPJ data."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from cnpj_pull.config import settings
from cnpj_pull.models import Partner, ResolvedEntity

logger = logging.getLogger(__name__)


class RegistryProvider(ABC):
    """Abstract interface for a CNPJ registry API."""

    name: str = "base"

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout or settings.provider_timeout

    @abstractmethod
    def url_for(self, cnpj: str) -> str:
        """URL of the registry record for a CNPJ."""

    @abstractmethod
    def parse(self, cnpj: str, data: dict) -> Optional[ResolvedEntity]:
        """Normalize a provider response into a ResolvedEntity."""

    async def fetch(self, cnpj: str, client: httpx.AsyncClient) -> Optional[ResolvedEntity]:
        """Fetch and parse one record. None when the provider has no data.

        Transport errors propagate to the caller.
        """
        response = await client.get(
            self.url_for(cnpj),
            headers={"User-Agent": settings.user_agent, "Accept": "application/json"},
            timeout=self.timeout,
        )
        if response.status_code == 404:
            logger.debug(f"{self.name}: {cnpj} not found")
            return None
        if response.status_code != 200:
            logger.warning(f"{self.name}: HTTP {response.status_code} for {cnpj}")
            return None
        return self.parse(cnpj, response.json())


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _number(value: Any) -> Optional[float]:
    try:
        return float(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _join_address(*parts: Any) -> Optional[str]:
    text = " ".join(p for p in (_text(part) for part in parts) if p)
    return text or None


def _phone(value: Any) -> Optional[str]:
    digits = "".join(c for c in str(value or "") if c.isdigit())
    return digits or None


class BrasilAPIProvider(RegistryProvider):
    """BrasilAPI CNPJ endpoint (primary)."""

    name = "brasilapi"
    base_url = "https://brasilapi.com.br/api/cnpj/v1"

    def url_for(self, cnpj: str) -> str:
        return f"{self.base_url}/{cnpj}"

    def parse(self, cnpj: str, data: dict) -> Optional[ResolvedEntity]:
        if not isinstance(data, dict) or not data.get("razao_social"):
            return None

        status = data.get("descricao_situacao_cadastral") or data.get("situacao_cadastral") or ""
        phones = tuple(
            p for p in (_phone(data.get("ddd_telefone_1")), _phone(data.get("ddd_telefone_2"))) if p
        )
        partners = tuple(
            Partner(name=socio["nome_socio"], role=_text(socio.get("qualificacao_socio")))
            for socio in data.get("qsa") or []
            if isinstance(socio, dict) and socio.get("nome_socio")
        )

        return ResolvedEntity(
            cnpj=cnpj,
            legal_name=_text(data.get("razao_social")),
            trade_name=_text(data.get("nome_fantasia")),
            size_band=_text(data.get("porte") or data.get("descricao_porte")),
            status=str(status).strip(),
            municipality=_text(data.get("municipio")),
            region=(_text(data.get("uf")) or "").upper() or None,
            primary_activity=_text(data.get("cnae_fiscal_descricao")),
            phones=phones,
            email=_text(data.get("email")),
            address=_join_address(
                data.get("descricao_tipo_de_logradouro"),
                data.get("logradouro"),
                data.get("numero"),
                data.get("complemento"),
                data.get("bairro"),
            ),
            zip_code=_text(data.get("cep")),
            legal_nature=_text(data.get("natureza_juridica")),
            share_capital=_number(data.get("capital_social")),
            opened_on=_text(data.get("data_inicio_atividade")),
            partners=partners,
            source=self.name,
        )


class MinhaReceitaProvider(BrasilAPIProvider):
    """Minha Receita mirror of the federal registry (secondary).

    Responses use the same field names as BrasilAPI.
    """

    name = "minhareceita"
    base_url = "https://minhareceita.org"


class CNPJWsProvider(RegistryProvider):
    """Public CNPJ.ws API, nested establishment layout."""

    name = "cnpjws"
    base_url = "https://publica.cnpj.ws/cnpj"

    def url_for(self, cnpj: str) -> str:
        return f"{self.base_url}/{cnpj}"

    def parse(self, cnpj: str, data: dict) -> Optional[ResolvedEntity]:
        if not isinstance(data, dict) or not data.get("razao_social"):
            return None

        establishment = data.get("estabelecimento") or {}
        city = establishment.get("cidade") or {}
        state = establishment.get("estado") or {}
        activity = establishment.get("atividade_principal") or {}
        size = data.get("porte") or {}
        nature = data.get("natureza_juridica") or {}

        phone = _phone(f"{establishment.get('ddd1') or ''}{establishment.get('telefone1') or ''}")
        partners = tuple(
            Partner(
                name=socio["nome"],
                role=_text((socio.get("qualificacao_socio") or {}).get("descricao")),
            )
            for socio in data.get("socios") or []
            if isinstance(socio, dict) and socio.get("nome")
        )

        return ResolvedEntity(
            cnpj=cnpj,
            legal_name=_text(data.get("razao_social")),
            trade_name=_text(establishment.get("nome_fantasia")),
            size_band=_text(size.get("descricao")),
            status=str(establishment.get("situacao_cadastral") or "").strip(),
            municipality=_text(city.get("nome")),
            region=(_text(state.get("sigla")) or "").upper() or None,
            primary_activity=_text(activity.get("descricao")),
            phones=(phone,) if phone else (),
            email=_text(establishment.get("email")),
            address=_join_address(
                establishment.get("tipo_logradouro"),
                establishment.get("logradouro"),
                establishment.get("numero"),
                establishment.get("complemento"),
                establishment.get("bairro"),
            ),
            zip_code=_text(establishment.get("cep")),
            legal_nature=_text(nature.get("descricao")),
            share_capital=_number(data.get("capital_social")),
            opened_on=_text(establishment.get("data_inicio_atividade")),
            partners=partners,
            source=self.name,
        )


PROVIDERS: dict[str, type[RegistryProvider]] = {
    BrasilAPIProvider.name: BrasilAPIProvider,
    MinhaReceitaProvider.name: MinhaReceitaProvider,
    CNPJWsProvider.name: CNPJWsProvider,
}


def build_providers(names: Optional[list[str]] = None) -> list[RegistryProvider]:
    """Instantiate the provider chain in priority order."""
    providers = []
    for name in names or settings.registry_providers:
        provider_cls = PROVIDERS.get(name.strip().lower())
        if provider_cls is None:
            raise ValueError(f"Unknown registry provider: {name}")
        providers.append(provider_cls())
    return providers
