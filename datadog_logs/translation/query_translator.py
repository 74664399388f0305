"""Normalization of free-text log searches into Datadog search syntax.

The translator is a fixed pipeline of pure string transforms; each stage sees
the previous stage's output:

1. ``apply_empty_default`` - blank input becomes the match-all ``*``.
2. ``normalize_facets`` - custom attributes (``env``, ``version``, container
   identifiers, ``image_name``) gain their ``@`` prefix; facet values holding
   whitespace or grouping punctuation are quoted.
3. ``normalize_levels`` - ``level:`` becomes ``status:`` and severity words
   are upper-cased, including inside ``status:( ... )`` groups.
4. ``normalize_boolean_operators`` - standalone ``and``/``or``/``not`` are
   upper-cased.
5. ``collapse_wildcards`` - ``term**`` becomes ``term*``.
6. ``collapse_whitespace`` - runs of whitespace shrink to one space.

Malformed input is never rejected; anything a stage does not recognize is
passed through untouched, and text inside double quotes is never rewritten.
Already-normalized queries are fixed points.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, List, Sequence, Tuple

logger = logging.getLogger(__name__)

MATCH_ALL = "*"

RESERVED_FACETS = ("service", "source", "host")
CUSTOM_FACETS = ("env", "version", "container_name", "container_id", "image_name")
SEVERITY_LEVELS = ("debug", "info", "warn", "warning", "error", "fatal", "trace")
BOOLEAN_OPERATORS = ("and", "or", "not")

_GROUPING_CHARS = set("()[]{}")
_QUOTED_SEGMENT = re.compile(r'"[^"]*"')

# A facet only starts at the beginning of the query, after whitespace or
# after an opening parenthesis; an optional ``-`` negates it.
_FACET_START = r"(?<![^\s(])(-?)"
_FACET_VALUE = r'("[^"]*"|\([^)]*\)|[^\s)]+)'

_SINGLE_TOKEN_FACET = re.compile(
    _FACET_START + r"(@?)(" + "|".join(("source", "host") + CUSTOM_FACETS) + r"):(\s*)" + _FACET_VALUE
)
_SERVICE_FACET = re.compile(_FACET_START + r"(service):(\s*)")
_LEVEL_FACET = re.compile(r"(?<![\w@.])(status|level):\s*(\([^)]+\)|[^\s)]+)", re.IGNORECASE)
_SEVERITY_WORD = re.compile(r"\b(" + "|".join(SEVERITY_LEVELS) + r")\b", re.IGNORECASE)
_BOOLEAN_WORD = re.compile(r"(?<![^\s(])(" + "|".join(BOOLEAN_OPERATORS) + r")(?![^\s)])", re.IGNORECASE)
_REPEATED_WILDCARD = re.compile(r"([A-Za-z0-9_\-.@:]+)\*{2,}")
_WHITESPACE = re.compile(r"\s+")
_TOKEN = re.compile(r"\S+")
_INLINE_TIME_FILTERS = ("@timestamp:", "timestamp:", "time:", "date:")
_RELATIVE_TIME_FILTER = re.compile(r"@timestamp:\s*[<>]=?\s*now[-+]\w+")


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _map_unquoted(query: str, transform: Callable[[str], str]) -> str:
    """Apply ``transform`` to the parts of ``query`` outside double quotes."""

    pieces: List[str] = []
    position = 0
    for match in _QUOTED_SEGMENT.finditer(query):
        pieces.append(transform(query[position:match.start()]))
        pieces.append(match.group(0))
        position = match.end()
    pieces.append(transform(query[position:]))
    return "".join(pieces)


def _group_depth(query: str, index: int) -> int:
    """Parenthesis nesting depth at ``index``, ignoring quoted text."""

    depth = 0
    in_quotes = False
    for char in query[:index]:
        if char == '"':
            in_quotes = not in_quotes
        elif in_quotes:
            continue
        elif char == "(":
            depth += 1
        elif char == ")" and depth > 0:
            depth -= 1
    return depth


def _in_quotes(query: str, index: int) -> bool:
    return query.count('"', 0, index) % 2 == 1


def _needs_quotes(value: str) -> bool:
    return any(char.isspace() or char in _GROUPING_CHARS for char in value)


def _is_wrapped(value: str) -> bool:
    return (value.startswith('"') and value.endswith('"') and len(value) > 1) or (
        value.startswith("(") and value.endswith(")")
    )


def _ends_service_value(token: str) -> bool:
    return (
        token.lower() in BOOLEAN_OPERATORS
        or ":" in token
        or token.startswith(("-", '"'))
        or any(char in _GROUPING_CHARS for char in token)
    )


# ----------------------------------------------------------------------
# Pipeline stages
# ----------------------------------------------------------------------
def apply_empty_default(query: str) -> str:
    if not query or not query.strip():
        return MATCH_ALL
    return query


def _quote_single_token_facet(query: str) -> str:
    def replace(match: "re.Match[str]") -> str:
        if _in_quotes(query, match.start()):
            return match.group(0)
        negation, prefix, name, spacing, value = match.groups()
        if name in CUSTOM_FACETS:
            prefix = "@"
        if not _is_wrapped(value) and _needs_quotes(value) and _group_depth(query, match.start()) == 0:
            value = f'"{value}"'
        return f"{negation}{prefix}{name}:{spacing}{value}"

    return _SINGLE_TOKEN_FACET.sub(replace, query)


def _quote_service_values(query: str) -> str:
    """Quote multi-word ``service:`` values at the top level of the query.

    The value runs over consecutive plain words and stops at the next facet,
    boolean keyword, negation, quote or grouping character.
    """

    pieces: List[str] = []
    position = 0
    for match in _SERVICE_FACET.finditer(query):
        value_start = match.end()
        if value_start < position:
            continue
        rest = query[value_start:]
        if (
            not rest
            or rest[0] in '"('
            or _in_quotes(query, match.start())
            or _group_depth(query, match.start()) > 0
        ):
            continue

        words: List[str] = []
        value_end = 0
        for token in _TOKEN.finditer(rest):
            word = token.group(0)
            if words and _ends_service_value(word):
                break
            words.append(word)
            value_end = token.end()
            if any(char in _GROUPING_CHARS for char in word):
                break
        value = " ".join(words)
        if len(words) < 2 and not _needs_quotes(value):
            continue

        pieces.append(query[position:value_start])
        pieces.append(f'"{value}"')
        position = value_start + value_end

    pieces.append(query[position:])
    return "".join(pieces)


def normalize_facets(query: str) -> str:
    """Prefix custom attributes and quote facet values that need it."""

    query = _quote_single_token_facet(query)
    return _quote_service_values(query)


def normalize_levels(query: str) -> str:
    """Rewrite ``level:`` to ``status:`` and upper-case severity values."""

    def replace(match: "re.Match[str]") -> str:
        if _in_quotes(query, match.start()):
            return match.group(0)
        attribute, value = match.group(1), match.group(2)
        if value.startswith("(") and value.endswith(")"):
            inner = _SEVERITY_WORD.sub(lambda word: word.group(1).upper(), value[1:-1])
            return f"status:({inner})"
        if value.lower() in SEVERITY_LEVELS:
            return f"status:{value.upper()}"
        if attribute.lower() == "level":
            return f"status:{value}"
        return match.group(0)

    return _LEVEL_FACET.sub(replace, query)


def normalize_boolean_operators(query: str) -> str:
    """Upper-case ``and``/``or``/``not`` used as standalone keywords."""

    return _map_unquoted(query, lambda part: _BOOLEAN_WORD.sub(lambda m: m.group(1).upper(), part))


def collapse_wildcards(query: str) -> str:
    """Reduce repeated trailing ``*`` after a term to a single ``*``."""

    return _map_unquoted(query, lambda part: _REPEATED_WILDCARD.sub(r"\1*", part))


def collapse_whitespace(query: str) -> str:
    return _WHITESPACE.sub(" ", query).strip()


PIPELINE: Sequence[Tuple[str, Callable[[str], str]]] = (
    ("empty_default", apply_empty_default),
    ("facets", normalize_facets),
    ("levels", normalize_levels),
    ("boolean_operators", normalize_boolean_operators),
    ("wildcards", collapse_wildcards),
    ("whitespace", collapse_whitespace),
)


# ----------------------------------------------------------------------
# Search-term extraction for highlighting
# ----------------------------------------------------------------------
_FACET_TERM = re.compile(r'-?@?[\w.\-]+:\s*(?:"[^"]*"|\([^)]*\)|\S+)')
_BOOLEAN_TERM = re.compile(r"\b(?:AND|OR|NOT)\b", re.IGNORECASE)
_QUOTED_TERM = re.compile(r'"([^"]*)"')


def extract_search_terms(query: str) -> List[str]:
    """Return the free-text terms of a query, facets and operators removed."""

    if not query or not query.strip():
        return []

    text = _FACET_TERM.sub(" ", query.strip())
    text = _BOOLEAN_TERM.sub(" ", text)
    text = text.replace("(", " ").replace(")", " ")

    terms: List[str] = [phrase.strip() for phrase in _QUOTED_TERM.findall(text) if phrase.strip()]
    text = _QUOTED_TERM.sub(" ", text)

    for word in text.split():
        word = word.strip("\"'").lstrip("-")
        if "*" in word:
            word = word.replace("*", "")
        if word:
            terms.append(word)

    return list(dict.fromkeys(terms))


class QueryTranslator:
    """Runs the normalization pipeline over raw search text."""

    def __init__(self, stages: Sequence[Tuple[str, Callable[[str], str]]] = PIPELINE) -> None:
        self.stages = stages

    def translate(self, raw_text: str) -> str:
        query = raw_text or ""
        for _name, stage in self.stages:
            query = stage(query)
        self._warn_on_inline_time_filters(query)
        logger.debug("logs.query.translated", extra={"raw_query": raw_text, "query": query})
        return query

    @staticmethod
    def _warn_on_inline_time_filters(query: str) -> None:
        lowered = query.lower()
        for pattern in _INLINE_TIME_FILTERS:
            if pattern in lowered:
                logger.warning(
                    "logs.query.inline_time_filter",
                    extra={"pattern": pattern, "query": query},
                )
                break
        if _RELATIVE_TIME_FILTER.search(query):
            logger.info("logs.query.relative_time_filter", extra={"query": query})
