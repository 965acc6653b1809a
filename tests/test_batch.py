"""Tests for uploaded-list CNPJ lookup."""

import pytest
from openpyxl import Workbook

from cnpj_pull.client.batch import BatchLookup, ItemStatus, identifiers_from_text, read_identifiers
from cnpj_pull.errors import IdentifierNotFoundError
from cnpj_pull.identifiers import complete_cnpj
from cnpj_pull.models import ResolvedEntity


def make_entity(cnpj: str, status: str = "ATIVA") -> ResolvedEntity:
    return ResolvedEntity(cnpj=cnpj, legal_name="Teste Ltda", status=status, source="test")


def make_cnpjs(count: int) -> list[str]:
    return [complete_cnpj(f"{i + 30:08d}0001") for i in range(count)]


class FakeLookup:
    def __init__(self, entities=None, missing=()):
        self.entities = {e.cnpj: e for e in entities or []}
        self.missing = set(missing)
        self.calls: list[str] = []

    async def __call__(self, cnpj: str):
        self.calls.append(cnpj)
        if cnpj in self.missing:
            raise IdentifierNotFoundError(cnpj)
        return self.entities.get(cnpj)


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


class TestReadIdentifiers:
    """Tests for parsing uploaded files."""

    def test_csv_cells(self, tmp_path):
        path = tmp_path / "list.csv"
        path.write_text("cnpj;nome\n11.222.333/0001-81;Cantina\n00000000000191,Banco\n11222333000181\tdup\n")
        assert read_identifiers(path) == ["11222333000181", "00000000000191"]

    def test_txt_drops_invalid(self, tmp_path):
        path = tmp_path / "list.txt"
        path.write_text("11.222.333/0001-82\n123\n33.000.167/0001-01\n")
        assert read_identifiers(path) == ["33000167000101"]

    def test_xlsx(self, tmp_path):
        path = tmp_path / "list.xlsx"
        workbook = Workbook()
        sheet = workbook.active
        sheet.append(["CNPJ", "Nome"])
        sheet.append(["11.222.333/0001-81", "Cantina"])
        sheet.append([191, "Banco"])
        workbook.save(path)
        assert read_identifiers(path) == ["11222333000181", "00000000000191"]

    def test_unsupported_type(self, tmp_path):
        path = tmp_path / "list.pdf"
        path.write_text("x")
        with pytest.raises(ValueError):
            read_identifiers(path)

    def test_from_text(self):
        assert identifiers_from_text("11222333000181, 11222333000181") == ["11222333000181"]


class TestBatchLookup:
    """Tests for sequential lookup with spacing."""

    @pytest.mark.asyncio
    async def test_accepts_only_active(self):
        cnpjs = make_cnpjs(3)
        lookup = FakeLookup(
            [make_entity(cnpjs[0]), make_entity(cnpjs[1], status="BAIXADA")],
            missing=[cnpjs[2]],
        )
        result = await BatchLookup(lookup, delay=0.5, sleep=RecordingSleep()).run(cnpjs)

        assert [item.status for item in result.items] == [
            ItemStatus.ACCEPTED,
            ItemStatus.ERROR,
            ItemStatus.ERROR,
        ]
        assert [e.cnpj for e in result.accepted] == [cnpjs[0]]
        assert "BAIXADA" in result.items[1].error

    @pytest.mark.asyncio
    async def test_spacing_between_calls(self):
        cnpjs = make_cnpjs(4)
        sleep = RecordingSleep()
        lookup = FakeLookup([make_entity(c) for c in cnpjs])
        await BatchLookup(lookup, delay=0.5, sleep=sleep).run(cnpjs)
        assert sleep.delays == [0.5, 0.5, 0.5]
        assert lookup.calls == cnpjs

    @pytest.mark.asyncio
    async def test_caps_at_limit(self):
        cnpjs = make_cnpjs(105)
        lookup = FakeLookup([make_entity(c) for c in cnpjs])
        result = await BatchLookup(lookup, delay=0, max_identifiers=100).run(cnpjs)
        assert result.truncated
        assert result.total_found == 105
        assert len(result.items) == 100
        assert len(lookup.calls) == 100

    @pytest.mark.asyncio
    async def test_not_found_result(self):
        cnpjs = make_cnpjs(1)
        result = await BatchLookup(FakeLookup([]), delay=0).run(cnpjs)
        assert result.items[0].error == "Not found"

    @pytest.mark.asyncio
    async def test_on_item_callback(self, tmp_path):
        cnpjs = make_cnpjs(2)
        path = tmp_path / "list.txt"
        path.write_text("\n".join(cnpjs))
        seen = []
        result = await BatchLookup(FakeLookup([make_entity(c) for c in cnpjs]), delay=0).run_file(
            path, on_item=seen.append
        )
        assert [item.cnpj for item in seen] == cnpjs
        assert len(result.accepted) == 2
