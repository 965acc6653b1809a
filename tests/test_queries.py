"""Tests for search query fan-out."""

from cnpj_pull.discovery.queries import build_queries, synonyms_for
from cnpj_pull.models import FilterSet


def make_filters(**kwargs) -> FilterSet:
    """Create test filters with defaults."""
    defaults = {"segment": "Restaurantes", "region": "SP"}
    defaults.update(kwargs)
    return FilterSet(**defaults)


class TestQueryFanout:
    """Tests for building search queries from filters."""

    def test_query_count_with_synonyms(self):
        queries = build_queries(make_filters(city="Campinas"))
        assert len(queries) == 6
        assert len(set(queries)) == len(queries)

    def test_query_count_without_synonyms(self):
        queries = build_queries(make_filters(segment="Pet shops"))
        assert len(queries) == 4

    def test_deterministic(self):
        filters = make_filters(city="Campinas")
        assert build_queries(filters) == build_queries(filters)

    def test_city_used_as_place(self):
        queries = build_queries(make_filters(city="Campinas"))
        assert queries[0] == 'site:cnpj.biz "Campinas" "Restaurantes" CNPJ ativa situacao cadastral'
        assert 'site:empresascnpj.com "Campinas" SP Restaurantes CNPJ ativa' in queries

    def test_state_name_without_city(self):
        queries = build_queries(make_filters())
        assert '"São Paulo"' in queries[0]
        assert not any('""' in q for q in queries)
        assert not any("  " in q for q in queries)

    def test_synonym_queries(self):
        queries = build_queries(make_filters(city="Campinas"))
        assert 'site:cnpj.biz "Campinas" "restaurante" ativa' in queries
        assert '"pizzaria" "Campinas" SP CNPJ empresa ativa' in queries

    def test_targets_registry_sites(self):
        queries = build_queries(make_filters())
        joined = " ".join(queries)
        for site in ("cnpj.biz", "empresascnpj.com", "casadosdados.com.br"):
            assert f"site:{site}" in joined


class TestSynonyms:
    def test_accent_and_case_insensitive(self):
        assert synonyms_for("educacao")[0] == "escola"
        assert synonyms_for("RESTAURANTES")[0] == "restaurante"

    def test_unknown_segment(self):
        assert synonyms_for("Pet shops") == []
