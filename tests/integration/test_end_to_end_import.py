from __future__ import annotations

import pytest

from baseoff_import.models.import_job import JobStatus
from baseoff_import.services.orchestrator import import_file


@pytest.fixture()
def minimal_rows() -> list[list[str]]:
    return [["NB", "CPF", "NOME", "VL_RMC"], ["12345", "123.456.789-09", "JOÃO SILVA", "1.234,56"]]


def _check_single_client(services, result):
    assert result.status == JobStatus.COMPLETED.value
    assert (result.success_count, result.error_count, result.contracts_detected) == (1, 0, 0)
    client = services.store.clients["12345678909"]
    assert client["nb"] == "12345"
    assert client["nome"] == "JOÃO SILVA"
    assert client["valor_rmc"] == pytest.approx(1234.56)
    assert services.store.contracts == {}


def test_csv_import_end_to_end(memory_services, make_csv, minimal_rows):
    result = import_file(make_csv(minimal_rows), memory_services, user_id="op1")
    _check_single_client(memory_services, result)
    assert memory_services.store.clients["12345678909"]["imported_by"] == "op1"


def test_xlsx_import_end_to_end(memory_services, make_xlsx, minimal_rows):
    rows = [minimal_rows[0], [12345, 12345678909, "JOÃO SILVA", 1234.56]]
    result = import_file(make_xlsx(rows), memory_services)
    _check_single_client(memory_services, result)


def test_latin1_semicolon_csv(memory_services, make_csv, minimal_rows):
    result = import_file(make_csv(minimal_rows, encoding="latin-1"), memory_services)
    _check_single_client(memory_services, result)
