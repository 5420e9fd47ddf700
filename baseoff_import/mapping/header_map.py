from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from ..errors import HeaderMappingError
from ..models.cell import Cell, Number, RawRow, Text
from .aliases import COLUMN_ALIASES

"""Header Mapper: first RawRow -> HeaderMap (column index -> canonical field).

Normalization: uppercase, trim, collapse whitespace runs into one underscore.
Lookup is exact on that token first, then on the token with every underscore
removed. Unresolved columns are dropped silently.
"""

__all__ = [
    "HeaderMap",
    "normalize_header",
    "resolve_header",
    "build_header_map",
]

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_header(raw: str) -> str:
    return _WHITESPACE.sub("_", raw.upper().strip())


def _build_indexes(aliases: Mapping[str, str]) -> tuple[Mapping[str, str], Mapping[str, str]]:
    exact: dict[str, str] = {}
    compact: dict[str, str] = {}
    for alias, canonical in aliases.items():
        token = normalize_header(alias)
        exact.setdefault(token, canonical)
        compact.setdefault(token.replace("_", ""), canonical)
    return MappingProxyType(exact), MappingProxyType(compact)


_EXACT_INDEX, _COMPACT_INDEX = _build_indexes(COLUMN_ALIASES)


def resolve_header(raw: str) -> str | None:
    """Return the canonical field for one header cell, or None."""
    token = normalize_header(raw)
    if not token:
        return None
    canonical = _EXACT_INDEX.get(token)
    if canonical is None:
        canonical = _COMPACT_INDEX.get(token.replace("_", ""))
    return canonical


def _header_text(cell: Cell) -> str | None:
    if isinstance(cell, Text):
        return cell.value
    if isinstance(cell, Number):
        return cell.as_plain_str()
    return None


@dataclass(frozen=True)
class HeaderMap:
    """Immutable column index -> canonical field mapping."""
    columns: Mapping[int, str]
    unmapped: tuple[str, ...] = field(default=())

    def __len__(self) -> int:
        return len(self.columns)

    def __iter__(self) -> Iterator[int]:
        return iter(self.columns)

    def items(self):
        return self.columns.items()

    @property
    def fields(self) -> frozenset[str]:
        return frozenset(self.columns.values())

    def has_contract_columns(self) -> bool:
        return {"contrato", "banco_emprestimo"} <= self.fields


def build_header_map(header_row: RawRow) -> HeaderMap:
    """Resolve every header cell; raise HeaderMappingError when none resolves."""
    columns: dict[int, str] = {}
    unmapped: list[str] = []
    for idx, cell in enumerate(header_row):
        text = _header_text(cell)
        if text is None:
            continue
        canonical = resolve_header(text)
        if canonical is None:
            if text.strip():
                unmapped.append(text.strip())
            continue
        columns[idx] = canonical

    if not columns:
        raise HeaderMappingError(
            "no header column matched a known field; check the file layout"
        )
    if unmapped:
        logger.debug("unmapped header columns: %s", unmapped)

    header_map = HeaderMap(columns=MappingProxyType(columns), unmapped=tuple(unmapped))
    logger.debug(
        "header map resolved=%d contract_columns=%s",
        len(header_map),
        header_map.has_contract_columns(),
    )
    return header_map
