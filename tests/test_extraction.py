"""Tests for CNPJ helpers and text extraction."""

import pytest

from cnpj_pull.discovery.extractor import IdentifierExtractor
from cnpj_pull.identifiers import (
    check_digits,
    clean_cnpj,
    complete_cnpj,
    format_cnpj,
    is_valid_cnpj,
    is_valid_format,
)


class TestIdentifierHelpers:
    """Tests for normalization and validation."""

    def test_clean_strips_punctuation(self):
        assert clean_cnpj("11.222.333/0001-81") == "11222333000181"

    def test_format(self):
        assert format_cnpj("11222333000181") == "11.222.333/0001-81"

    def test_format_leaves_wrong_length_alone(self):
        assert format_cnpj("123") == "123"

    def test_format_validity(self):
        assert is_valid_format("11222333000181")
        assert not is_valid_format("1122233300018")
        assert not is_valid_format("11111111111111")

    def test_check_digits(self):
        assert check_digits("112223330001") == "81"
        assert check_digits("000000000001") == "91"

    def test_complete_cnpj(self):
        assert complete_cnpj("11.222.333/0001") == "11222333000181"
        with pytest.raises(ValueError):
            complete_cnpj("123")

    def test_is_valid_cnpj(self):
        assert is_valid_cnpj("11.222.333/0001-81")
        assert is_valid_cnpj("00000000000191")
        assert not is_valid_cnpj("11.222.333/0001-82")
        assert not is_valid_cnpj("00000000000000")


class TestIdentifierExtractor:
    """Tests for pulling CNPJs out of scraped text."""

    def test_extracts_formatted_and_bare(self):
        extractor = IdentifierExtractor()
        text = "Pizzaria X - CNPJ 11.222.333/0001-81. Outra: 22444666000155 ativa"
        assert extractor.extract(text) == ["11222333000181", "22444666000155"]

    def test_extracts_partial_punctuation(self):
        extractor = IdentifierExtractor()
        assert extractor.extract("cnpj 11222333/0001-81") == ["11222333000181"]

    def test_drops_wrong_length(self):
        extractor = IdentifierExtractor()
        assert extractor.extract("telefone 1122233300018 e 112223330001811") == []

    def test_drops_repeated_digit(self):
        extractor = IdentifierExtractor()
        assert extractor.extract("00.000.000/0000-00") == []

    def test_dedups_across_calls(self):
        extractor = IdentifierExtractor()
        assert extractor.extract("11.222.333/0001-81") == ["11222333000181"]
        assert extractor.extract("again 11222333000181") == []
        assert len(extractor) == 1
        assert extractor.identifiers == ["11222333000181"]

    def test_format_mode_ignores_check_digits(self):
        extractor = IdentifierExtractor()
        assert extractor.extract("11.222.333/0001-82") == ["11222333000182"]

    def test_strict_mode_requires_check_digits(self):
        extractor = IdentifierExtractor(strict=True)
        assert extractor.extract("11.222.333/0001-82 11.222.333/0001-81") == ["11222333000181"]

    def test_empty_text(self):
        extractor = IdentifierExtractor()
        assert extractor.extract("") == []
        assert extractor.extract_all(["", "nada aqui"]) == []
