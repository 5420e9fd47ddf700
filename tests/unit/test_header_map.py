from __future__ import annotations

import itertools

import pytest

from baseoff_import.errors import HeaderMappingError
from baseoff_import.mapping.aliases import CLIENT_FIELDS, COLUMN_ALIASES, CONTRACT_FIELDS
from baseoff_import.mapping.header_map import build_header_map, normalize_header, resolve_header
from baseoff_import.models.cell import EMPTY, Number, Text


def _row(*values):
    return tuple(Text(v) if isinstance(v, str) else v for v in values)


def test_normalize_header():
    assert normalize_header("  dt nascimento ") == "DT_NASCIMENTO"
    assert normalize_header("Banco \t Emprestimo") == "BANCO_EMPRESTIMO"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("DTNASCIMENTO", "data_nascimento"),
        ("DT_NASCIMENTO", "data_nascimento"),
        ("data nascimento", "data_nascimento"),
        ("cpf", "cpf"),
        ("Banco Empréstimo", "banco_emprestimo"),
        ("NR_CONTRATO", "contrato"),
        ("nr contrato", "contrato"),
        ("VL_RMC", "valor_rmc"),
        ("TEL_CEL_1", "tel_cel_1"),
        ("TELCEL1", "tel_cel_1"),
        ("OBSERVACAO", None),
        ("", None),
    ],
)
def test_resolve_header(raw, expected):
    assert resolve_header(raw) == expected


def test_underscore_stripped_fallback():
    # "NOME_PAI" exists; "NOME__PAI" / "NO_MEPAI" only resolve through the compact index
    assert resolve_header("NO_MEPAI") == "nome_pai"
    assert resolve_header("STATUS_BENE_FICIO") == "status_beneficio"


def test_alias_table_is_immutable_and_partitioned():
    with pytest.raises(TypeError):
        COLUMN_ALIASES["NEW"] = "x"  # type: ignore[index]
    assert CONTRACT_FIELDS.isdisjoint(CLIENT_FIELDS)
    assert {"cpf", "nb", "nome"} <= CLIENT_FIELDS
    assert {"contrato", "banco_emprestimo"} <= CONTRACT_FIELDS


def test_build_header_map_drops_unknown_columns():
    hm = build_header_map(_row("NB", "OBS", "CPF", EMPTY, "nome", Number(2020.0)))
    assert dict(hm.columns) == {0: "nb", 2: "cpf", 4: "nome"}
    assert hm.unmapped == ("OBS", "2020")
    assert len(hm) == 3
    assert not hm.has_contract_columns()


def test_build_header_map_contract_columns():
    hm = build_header_map(_row("CPF", "CONTRATO", "BANCO_EMPRESTIMO"))
    assert hm.has_contract_columns()


def test_build_header_map_empty_is_fatal():
    with pytest.raises(HeaderMappingError):
        build_header_map(_row("FOO", "BAR", EMPTY))


def test_header_map_is_immutable():
    hm = build_header_map(_row("CPF"))
    with pytest.raises(TypeError):
        hm.columns[5] = "nome"  # type: ignore[index]


def test_header_resolution_order_independent():
    headers = ["NB", "CPF", "NOME", "VL_RMC", "DT NASCIMENTO"]
    expected = build_header_map(_row(*headers)).fields
    for perm in itertools.permutations(headers):
        assert build_header_map(_row(*perm)).fields == expected


def test_header_resolution_idempotent():
    row = _row("NB", "cpf ", "Nome", "Vl Parcela")
    first, second = build_header_map(row), build_header_map(row)
    assert dict(first.columns) == dict(second.columns)
    assert first.unmapped == second.unmapped
