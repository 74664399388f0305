import pytest

from datadog_logs.translation import MATCH_ALL, QueryTranslator, extract_search_terms
from datadog_logs.translation.query_translator import (
    collapse_wildcards,
    normalize_boolean_operators,
    normalize_facets,
    normalize_levels,
)


@pytest.fixture
def translator():
    return QueryTranslator()


class TestEmptyQuery:
    @pytest.mark.parametrize("raw", ["", "   ", "\t\n", None])
    def test_blank_becomes_match_all(self, translator, raw):
        assert translator.translate(raw) == MATCH_ALL


class TestFacets:
    def test_custom_attributes_gain_prefix(self, translator):
        assert translator.translate("env:prod") == "@env:prod"
        assert translator.translate("container_name:api") == "@container_name:api"
        assert translator.translate("-env:staging") == "-@env:staging"

    def test_reserved_attributes_stay_unprefixed(self, translator):
        assert translator.translate("host:web-01 source:nginx") == "host:web-01 source:nginx"

    def test_multi_word_service_is_quoted(self, translator):
        assert translator.translate("service:my service") == 'service:"my service"'

    def test_service_value_stops_at_next_facet(self, translator):
        assert translator.translate("service:web-app status:error") == "service:web-app status:ERROR"

    def test_facets_inside_quoted_phrases_untouched(self, translator):
        assert translator.translate('"foo env:prod"') == '"foo env:prod"'
        assert translator.translate('"deploy service:web app" env:prod') == '"deploy service:web app" @env:prod'

    def test_quoted_and_grouped_values_untouched(self):
        assert normalize_facets('service:"my service"') == 'service:"my service"'
        assert normalize_facets("service:(a OR b)") == "service:(a OR b)"


class TestLevels:
    def test_level_alias_rewritten(self, translator):
        assert translator.translate("level:error") == "status:ERROR"

    def test_status_group_upper_cased(self):
        assert normalize_levels("status:(error OR warn)") == "status:(ERROR OR WARN)"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("status:error OR status:warn", "status:ERROR OR status:WARN"),
            ("status:(error OR warn OR fatal)", "status:(ERROR OR WARN OR FATAL)"),
        ],
    )
    def test_severity_values_upper_cased(self, translator, raw, expected):
        assert translator.translate(raw) == expected

    def test_level_inside_quotes_untouched(self, translator):
        assert translator.translate('"level:error seen"') == '"level:error seen"'

    def test_unknown_level_value_kept(self):
        assert normalize_levels("level:custom") == "status:custom"


class TestBooleanOperators:
    def test_standalone_keywords_upper_cased(self, translator):
        assert translator.translate("error and warn or not timeout") == "error AND warn OR NOT timeout"

    def test_keywords_inside_groups(self):
        assert normalize_boolean_operators("(error or warn)") == "(error OR warn)"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("error and warning", "error AND warning"),
            ("error Or warning", "error OR warning"),
            ("not error", "NOT error"),
        ],
    )
    def test_mixed_case_keywords(self, translator, raw, expected):
        assert translator.translate(raw) == expected

    def test_words_containing_keywords_untouched(self):
        assert normalize_boolean_operators("android order notice") == "android order notice"

    def test_quoted_phrases_untouched(self):
        assert normalize_boolean_operators('"disk and cpu" or memory') == '"disk and cpu" OR memory'


class TestWildcards:
    def test_repeated_wildcards_collapse(self, translator):
        assert translator.translate("error** service") == "error* service"

    def test_single_wildcard_and_quotes_untouched(self):
        assert collapse_wildcards("-term*") == "-term*"
        assert collapse_wildcards('"error**"') == '"error**"'


class TestIdempotence:
    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "level:error",
            "status:(error OR warn)",
            "env:prod service:my service",
            "service:web-app status:error",
            "error and not timeout",
            "error** service",
            "service:(a OR b) host:web-01",
            '-env:staging "disk and cpu"',
            "  spaced    out   query ",
        ],
    )
    def test_translate_is_a_fixed_point(self, translator, raw):
        once = translator.translate(raw)
        assert translator.translate(once) == once


class TestExtractSearchTerms:
    def test_facets_and_operators_removed(self):
        terms = extract_search_terms('service:web-app status:ERROR timeout AND "connection refused"')
        assert terms == ["connection refused", "timeout"]

    def test_wildcards_and_negation_stripped(self):
        assert extract_search_terms("error* AND NOT -debug") == ["error", "debug"]

    def test_match_all_has_no_terms(self):
        assert extract_search_terms(MATCH_ALL) == []
        assert extract_search_terms("") == []
