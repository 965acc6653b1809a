"""Lookup of an uploaded list of CNPJs, one at a time."""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

import httpx
from openpyxl import load_workbook

from cnpj_pull.config import settings
from cnpj_pull.discovery import IdentifierExtractor
from cnpj_pull.errors import DiscoveryError
from cnpj_pull.models import ResolvedEntity
from cnpj_pull.models.entity import is_active_status

logger = logging.getLogger(__name__)

CELL_SEPARATORS = re.compile(r"[,;\t]")
TEXT_SUFFIXES = {".csv", ".txt"}
SPREADSHEET_SUFFIXES = {".xlsx", ".xlsm"}

Lookup = Callable[[str], Awaitable[ResolvedEntity]]


class ItemStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    ERROR = "error"


@dataclass
class BatchItem:
    cnpj: str
    status: ItemStatus = ItemStatus.PENDING
    entity: Optional[ResolvedEntity] = None
    error: Optional[str] = None


@dataclass
class BatchResult:
    items: list[BatchItem] = field(default_factory=list)
    total_found: int = 0
    truncated: bool = False

    @property
    def accepted(self) -> list[ResolvedEntity]:
        return [item.entity for item in self.items if item.status is ItemStatus.ACCEPTED]

    @property
    def errors(self) -> list[BatchItem]:
        return [item for item in self.items if item.status is ItemStatus.ERROR]


def _cells_from_text(text: str) -> Iterable[str]:
    for line in text.splitlines():
        for cell in CELL_SEPARATORS.split(line):
            yield cell.strip().strip('"')


def _cells_from_workbook(path: Path) -> Iterable[str]:
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        for sheet in workbook.worksheets:
            for row in sheet.iter_rows(values_only=True):
                for value in row:
                    if value is None:
                        continue
                    if isinstance(value, (int, float)):
                        # Numeric cells lose leading zeros
                        yield str(int(value)).zfill(14)
                    else:
                        yield str(value).strip()
    finally:
        workbook.close()


def read_identifiers(path: Path) -> list[str]:
    """Valid, deduplicated CNPJs from a .csv, .txt or .xlsx file."""
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix in TEXT_SUFFIXES:
        cells = _cells_from_text(path.read_text(encoding="utf-8-sig"))
    elif suffix in SPREADSHEET_SUFFIXES:
        cells = _cells_from_workbook(path)
    else:
        raise ValueError(f"Unsupported file type: {path.suffix}")

    extractor = IdentifierExtractor(strict=True)
    for cell in cells:
        extractor.extract(cell)
    return extractor.identifiers


def identifiers_from_text(text: str) -> list[str]:
    extractor = IdentifierExtractor(strict=True)
    for cell in _cells_from_text(text):
        extractor.extract(cell)
    return extractor.identifiers


class BatchLookup:
    """Resolve an uploaded list sequentially, spacing out the calls.

    Only active registrations are accepted; per-item failures are
    recorded and the batch continues.
    """

    def __init__(
        self,
        lookup: Lookup,
        delay: Optional[float] = None,
        max_identifiers: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.lookup = lookup
        self.delay = settings.batch_upload_delay if delay is None else delay
        self.max_identifiers = max_identifiers or settings.batch_upload_max_identifiers
        self.sleep = sleep

    async def run(
        self,
        identifiers: list[str],
        on_item: Optional[Callable[[BatchItem], None]] = None,
    ) -> BatchResult:
        result = BatchResult(total_found=len(identifiers))
        if len(identifiers) > self.max_identifiers:
            logger.warning(
                f"Batch has {len(identifiers)} CNPJs; only the first {self.max_identifiers} are processed"
            )
            result.truncated = True
        result.items = [BatchItem(cnpj=cnpj) for cnpj in identifiers[: self.max_identifiers]]

        for index, item in enumerate(result.items):
            if index > 0 and self.delay:
                await self.sleep(self.delay)
            await self._resolve(item)
            if on_item is not None:
                on_item(item)

        logger.info(f"Batch lookup: {len(result.accepted)} active of {len(result.items)}")
        return result

    async def run_file(self, path: Path, on_item: Optional[Callable[[BatchItem], None]] = None) -> BatchResult:
        return await self.run(read_identifiers(path), on_item=on_item)

    async def _resolve(self, item: BatchItem) -> None:
        try:
            entity = await self.lookup(item.cnpj)
        except (DiscoveryError, httpx.HTTPError) as e:
            item.status = ItemStatus.ERROR
            item.error = str(e)
            return

        if entity is None:
            item.status = ItemStatus.ERROR
            item.error = "Not found"
        elif not is_active_status(entity.status):
            item.status = ItemStatus.ERROR
            item.error = f"Not active ({entity.status or 'unknown'})"
        else:
            item.status = ItemStatus.ACCEPTED
            item.entity = entity
