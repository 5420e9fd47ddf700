from __future__ import annotations

import pytest

from baseoff_import.mapping.header_map import build_header_map
from baseoff_import.models.cell import EMPTY, Number, Text
from baseoff_import.models.error_record import MISSING_CPF, MISSING_NB, MISSING_NOME
from baseoff_import.normalize.validator import FIELD_COERCIONS, extract_fields, normalize_row, row_keys
from baseoff_import.models.records import CLIENT_COLUMNS, CONTRACT_COLUMNS


def _row(*values):
    return tuple(Text(v) if isinstance(v, str) else v for v in values)


@pytest.fixture()
def header_map():
    return build_header_map(
        _row("NB", "CPF", "NOME", "DT_NASCIMENTO", "UF", "EMAIL_1", "TELCEL_1", "VL_RMC",
             "CONTRATO", "BANCO_EMPRESTIMO", "PRAZO", "VL_PARCELA")
    )


def test_every_record_field_has_a_coercion():
    persisted = (set(CLIENT_COLUMNS) | set(CONTRACT_COLUMNS)) - {"imported_by", "import_job_id", "client_id"}
    assert persisted == set(FIELD_COERCIONS)


def test_full_row_normalizes(header_map):
    row = _row("12345", "123.456.789-09", " JOÃO SILVA ", "15/03/1960", "sp", " Joao@Mail.com ",
               "(11) 98888-7777", "1.234,56", "C-77", "001", "84", "150,75")
    outcome = normalize_row(row, header_map, 0, imported_by="op1", import_job_id="job-1")
    assert outcome.ok
    client = outcome.client
    assert client.cpf == "12345678909"
    assert client.nb == "12345"
    assert client.nome == "JOÃO SILVA"
    assert client.data_nascimento == "1960-03-15"
    assert client.uf == "SP"
    assert client.email_1 == "joao@mail.com"
    assert client.tel_cel_1 == "11988887777"
    assert client.valor_rmc == pytest.approx(1234.56)
    assert client.imported_by == "op1"
    assert client.import_job_id == "job-1"
    assert client.source_row == 0
    contract = outcome.contract
    assert contract is not None
    assert contract.key == ("12345678909", "C-77")
    assert contract.banco_emprestimo == "001"
    assert contract.prazo == 84
    assert contract.vl_parcela == pytest.approx(150.75)
    assert contract.client_id is None


def test_numeric_cells_from_spreadsheet(header_map):
    row = (Number(12345.0), Number(12345678909.0), Text("ANA"), Number(43831.0))
    outcome = normalize_row(row, header_map, 3)
    assert outcome.client.nb == "12345"
    assert outcome.client.cpf == "12345678909"
    assert outcome.client.data_nascimento == "2020-01-01"
    assert outcome.row_number == 5


def test_short_rows_are_padded_with_empty(header_map):
    outcome = normalize_row(_row("1", "2", "Ana"), header_map, 0)
    assert outcome.ok
    assert outcome.client.cpf == "00000000002"
    assert outcome.contract is None


def test_missing_cpf_rejected_with_key_reason(header_map):
    outcome = normalize_row(_row("1", "sem cpf", "Ana"), header_map, 0)
    assert not outcome.ok
    assert outcome.error_type == MISSING_CPF
    assert "CPF" in outcome.reason


def test_missing_name_rejected_with_name_reason(header_map):
    outcome = normalize_row(_row("1", "12345678909", "   "), header_map, 0)
    assert not outcome.ok
    assert outcome.error_type == MISSING_NOME
    assert "NOME" in outcome.reason


def test_missing_nb_rejected(header_map):
    outcome = normalize_row(_row(EMPTY, "12345678909", "Ana"), header_map, 0)
    assert outcome.error_type == MISSING_NB


def test_rejection_reasons_are_distinct(header_map):
    reasons = {
        normalize_row(_row("1", "", "Ana"), header_map, 0).reason,
        normalize_row(_row("", "1", "Ana"), header_map, 0).reason,
        normalize_row(_row("1", "1", ""), header_map, 0).reason,
    }
    assert len(reasons) == 3


def test_rows_are_independent(header_map):
    bad = normalize_row(_row("1", "", "Ana"), header_map, 0)
    good = normalize_row(_row("2", "11122233344", "Bia"), header_map, 1)
    assert not bad.ok and good.ok


def test_contract_requires_number_and_bank(header_map):
    base = ["1", "12345678909", "Ana", "", "", "", "", ""]
    only_number = normalize_row(_row(*base, "C-1", ""), header_map, 0)
    only_bank = normalize_row(_row(*base, "", "001"), header_map, 0)
    both = normalize_row(_row(*base, "C-1", "001"), header_map, 0)
    assert only_number.ok and only_number.contract is None
    assert only_bank.ok and only_bank.contract is None
    assert both.contract is not None


def test_bad_cells_degrade_to_none(header_map):
    row = _row("1", "12345678909", "Ana", "31/02/2020", "", "", "n/a", "abc")
    outcome = normalize_row(row, header_map, 0)
    assert outcome.ok
    assert outcome.client.data_nascimento is None
    assert outcome.client.tel_cel_1 is None
    assert outcome.client.valor_rmc is None


def test_later_non_empty_column_wins():
    hm = build_header_map(_row("CPF", "NB", "NOME", "TELEFONE1", "TELCEL_1"))
    picked = extract_fields(_row("1", "2", "Ana", "111", "222"), hm)
    assert picked["tel_cel_1"] == Text("222")
    picked = extract_fields(_row("1", "2", "Ana", "111", EMPTY), hm)
    assert picked["tel_cel_1"] == Text("111")


def test_row_keys_agree_with_normalize_row(header_map):
    base = ["1", "123.456.789-09", "Ana", "", "", "", "", ""]
    with_contract = _row(*base, "C-1", "001")
    without_bank = _row(*base, "C-1", "")
    assert row_keys(with_contract, header_map) == ("12345678909", ("12345678909", "C-1"))
    assert normalize_row(with_contract, header_map, 0).contract.key == ("12345678909", "C-1")
    assert row_keys(without_bank, header_map) == ("12345678909", None)


@pytest.mark.parametrize("row", [("1", "", "Ana"), ("", "12345678909", "Ana"), ("1", "12345678909", "")])
def test_row_keys_none_for_rejected_rows(header_map, row):
    assert row_keys(_row(*row), header_map) is None
    assert not normalize_row(_row(*row), header_map, 0).ok
