"""Mock registry provider for testing."""

import asyncio
from typing import Iterable, Optional

import httpx

from cnpj_pull.identifiers import complete_cnpj
from cnpj_pull.models import ResolvedEntity
from .providers import RegistryProvider


def default_mock_entities() -> list[ResolvedEntity]:
    """Sample registry records around Campinas/SP."""
    rows = [
        ("112223330001", "Cantina Bella Napoli Ltda", "Bella Napoli", "MICRO EMPRESA", "ATIVA", "CAMPINAS", "SP"),
        ("224466880001", "Pizzaria Forno de Pedra Ltda", "Forno de Pedra", "EMPRESA DE PEQUENO PORTE", "ATIVA", "CAMPINAS", "SP"),
        ("335577990001", "Churrascaria Gaucha Campinas Ltda", "Gaucha Grill", "DEMAIS", "ATIVA", "CAMPINAS", "SP"),
        ("446688000001", "Lanchonete Ponto Certo Ltda", "Ponto Certo", "MICRO EMPRESA", "BAIXADA", "CAMPINAS", "SP"),
        ("557799110001", "Hamburgueria Brasa Viva Ltda", "Brasa Viva", "MICRO EMPRESA", "ATIVA", "VALINHOS", "SP"),
        ("668800220001", "Restaurante Sabor de Minas Ltda", "Sabor de Minas", "EMPRESA DE PEQUENO PORTE", "ATIVA", "BELO HORIZONTE", "MG"),
        ("779911330001", "Restaurante Jequitiba Ltda", "Jequitiba", "MICRO EMPRESA", "INAPTA", "CAMPINAS", "SP"),
        ("880022440001", "Bistro Cambui Ltda", "Bistro Cambui", "EMPRESA DE PEQUENO PORTE", "ATIVA", "CAMPINAS", "SP"),
    ]
    return [
        ResolvedEntity(
            cnpj=complete_cnpj(base),
            legal_name=legal_name,
            trade_name=trade_name,
            size_band=size,
            status=status,
            municipality=city,
            region=uf,
            primary_activity="Restaurantes e similares",
            phones=("1932550000",),
            email=f"contato@{trade_name.lower().replace(' ', '')}.com.br",
            source="mock",
        )
        for base, legal_name, trade_name, size, status, city, uf in rows
    ]


class MockRegistryProvider(RegistryProvider):
    """Registry provider serving predefined entities."""

    name = "mock"

    def __init__(
        self,
        entities: Optional[Iterable[ResolvedEntity]] = None,
        delay: float = 0.0,
        failing: Iterable[str] = (),
        timeout: Optional[float] = None,
        name: Optional[str] = None,
    ):
        super().__init__(timeout=timeout)
        if entities is None:
            entities = default_mock_entities()
        self.entities = {entity.cnpj: entity for entity in entities}
        self.delay = delay
        self.failing = set(failing)
        self.calls: list[str] = []
        if name:
            self.name = name

    def url_for(self, cnpj: str) -> str:
        return f"mock://registry/{cnpj}"

    def parse(self, cnpj: str, data: dict) -> Optional[ResolvedEntity]:
        return ResolvedEntity.model_validate(data)

    async def fetch(self, cnpj: str, client: httpx.AsyncClient) -> Optional[ResolvedEntity]:
        self.calls.append(cnpj)
        if self.delay:
            await asyncio.sleep(self.delay)
        if cnpj in self.failing:
            raise httpx.ConnectError(f"{self.name} unavailable")
        entity = self.entities.get(cnpj)
        if entity is None:
            return None
        return entity.model_copy(update={"source": self.name})
