"""Search query fan-out for registry-aggregator discovery."""

import logging
import re

from cnpj_pull.models import FilterSet
from cnpj_pull.models.entity import strip_accents

logger = logging.getLogger(__name__)

STATE_NAMES = {
    "AC": "Acre", "AL": "Alagoas", "AP": "Amapá", "AM": "Amazonas",
    "BA": "Bahia", "CE": "Ceará", "DF": "Distrito Federal", "ES": "Espírito Santo",
    "GO": "Goiás", "MA": "Maranhão", "MT": "Mato Grosso", "MS": "Mato Grosso do Sul",
    "MG": "Minas Gerais", "PA": "Pará", "PB": "Paraíba", "PR": "Paraná",
    "PE": "Pernambuco", "PI": "Piauí", "RJ": "Rio de Janeiro", "RN": "Rio Grande do Norte",
    "RS": "Rio Grande do Sul", "RO": "Rondônia", "RR": "Roraima", "SC": "Santa Catarina",
    "SP": "São Paulo", "SE": "Sergipe", "TO": "Tocantins",
}

SEGMENT_SYNONYMS = {
    "Restaurantes": ["restaurante", "pizzaria", "hamburgueria", "lanchonete", "churrascaria"],
    "Educação": ["escola", "colégio", "curso", "faculdade", "creche"],
    "Veículos": ["concessionária", "revenda de veículos", "autopeças", "oficina mecânica"],
    "Imobiliárias": ["imobiliária", "corretora de imóveis", "administradora de imóveis"],
    "Clínicas": ["clínica médica", "consultório", "clínica odontológica", "laboratório"],
    "Academias": ["academia", "estúdio de pilates", "crossfit", "centro esportivo"],
    "Beleza": ["salão de beleza", "barbearia", "estética", "spa"],
    "Contabilidade": ["escritório de contabilidade", "contador", "assessoria contábil"],
    "Advocacia": ["escritório de advocacia", "advogado", "sociedade de advogados"],
    "Tecnologia": ["software", "desenvolvimento de sistemas", "consultoria em TI"],
    "Construção": ["construtora", "incorporadora", "engenharia civil", "materiais de construção"],
}

MAX_SYNONYM_QUERIES = 2

_SPACES = re.compile(r"\s+")


def _fold(value: str) -> str:
    return strip_accents(value).casefold().strip()


def synonyms_for(segment: str) -> list[str]:
    """Synonyms for a segment, matched case- and accent-insensitively."""
    if segment in SEGMENT_SYNONYMS:
        return list(SEGMENT_SYNONYMS[segment])
    folded = _fold(segment)
    for key, values in SEGMENT_SYNONYMS.items():
        if _fold(key) == folded:
            return list(values)
    return []


def _quoted(value: str) -> str:
    return f'"{value}"' if value else ""


def _clean(query: str) -> str:
    return _SPACES.sub(" ", query).strip()


def build_queries(filters: FilterSet) -> list[str]:
    """Build 4-6 distinct queries for a filter set. Deterministic."""
    segment = filters.segment or ""
    region = filters.region or ""
    city = filters.city or ""
    state_name = STATE_NAMES.get(region, region)
    place = city or state_name

    queries = [
        f"site:cnpj.biz {_quoted(place)} {_quoted(segment)} CNPJ ativa situacao cadastral",
        f"site:empresascnpj.com {_quoted(city)} {region} {segment} CNPJ ativa",
        f"site:casadosdados.com.br {_quoted(segment)} {_quoted(place)} empresa ativa",
        f"{_quoted(segment)} {_quoted(place)} CNPJ empresas ativas funcionando",
    ]

    synonyms = synonyms_for(segment)[:MAX_SYNONYM_QUERIES]
    if len(synonyms) > 0:
        queries.append(f"site:cnpj.biz {_quoted(place)} {_quoted(synonyms[0])} ativa")
    if len(synonyms) > 1:
        queries.append(f"{_quoted(synonyms[1])} {_quoted(city)} {region} CNPJ empresa ativa")

    unique = list(dict.fromkeys(_clean(q) for q in queries))
    logger.debug(f"Built {len(unique)} queries for {segment!r} in {place!r}")
    return unique
