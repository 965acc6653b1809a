"""CNPJ extraction from scraped text."""

import logging
import re

from cnpj_pull.identifiers import clean_cnpj, is_valid_cnpj, is_valid_format

logger = logging.getLogger(__name__)

# 00.000.000/0000-00 with optional punctuation, not part of a longer digit run
CNPJ_PATTERN = re.compile(r"(?<!\d)\d{2}\.?\d{3}\.?\d{3}/?\d{4}-?\d{2}(?!\d)")


class IdentifierExtractor:
    """Pull candidate CNPJs out of free text, deduplicated across calls.

    Malformed matches are dropped silently; scraped text is noisy.
    With ``strict=True`` the check digits must also be valid.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self._seen: dict[str, None] = {}

    def extract(self, text: str) -> list[str]:
        """Identifiers in ``text`` not returned by an earlier call."""
        found = []
        for match in CNPJ_PATTERN.finditer(text or ""):
            cnpj = clean_cnpj(match.group())
            if not self._accepts(cnpj) or cnpj in self._seen:
                continue
            self._seen[cnpj] = None
            found.append(cnpj)
        return found

    def extract_all(self, texts) -> list[str]:
        found = []
        for text in texts:
            found.extend(self.extract(text))
        return found

    @property
    def identifiers(self) -> list[str]:
        """Everything seen so far, in discovery order."""
        return list(self._seen)

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, cnpj: str) -> bool:
        return cnpj in self._seen

    def _accepts(self, cnpj: str) -> bool:
        if self.strict:
            return is_valid_cnpj(cnpj)
        return is_valid_format(cnpj)
