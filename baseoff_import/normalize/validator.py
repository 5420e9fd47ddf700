from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from ..mapping.header_map import HeaderMap
from ..models.cell import EMPTY, Cell, Empty, RawRow
from ..models.error_record import MISSING_CPF, MISSING_NB, MISSING_NOME
from ..models.records import ClientRecord, ContractRecord
from .coerce import (
    coerce_date,
    coerce_digits,
    coerce_integer,
    coerce_lower,
    coerce_natural_key,
    coerce_number,
    coerce_text,
    coerce_upper,
)

"""Row Normalizer / Validator.

One data row + HeaderMap -> RowOutcome holding either a ClientRecord (plus an
optional ContractRecord) or a single rejection reason. Cell problems never
raise; a row is rejected only when CPF, NB or NOME is missing after coercion.
"""

__all__ = [
    "FIELD_COERCIONS",
    "RowOutcome",
    "extract_fields",
    "normalize_row",
    "row_keys",
]

Coercion = Callable[[Any], Any]

_TEXT = coerce_text
_DIGITS = coerce_digits
_DATE = coerce_date
_NUMBER = coerce_number

FIELD_COERCIONS: Mapping[str, Coercion] = MappingProxyType({
    # chave / obrigatórios
    "cpf": coerce_natural_key,
    "nb": _TEXT,
    "nome": _TEXT,
    # cliente
    "data_nascimento": _DATE,
    "sexo": _TEXT,
    "esp": _TEXT,
    "dib": _DATE,
    "mr": _NUMBER,
    "banco_pagto": _TEXT,
    "agencia_pagto": _TEXT,
    "orgao_pagador": _TEXT,
    "conta_corrente": _TEXT,
    "meio_pagto": _TEXT,
    "status_beneficio": _TEXT,
    "bloqueio": _TEXT,
    "pensao_alimenticia": _TEXT,
    "representante": _TEXT,
    "ddb": _DATE,
    "banco_rmc": _TEXT,
    "valor_rmc": _NUMBER,
    "banco_rcc": _TEXT,
    "valor_rcc": _NUMBER,
    "bairro": _TEXT,
    "municipio": _TEXT,
    "uf": coerce_upper,
    "cep": _DIGITS,
    "endereco": _TEXT,
    "logr_tipo_1": _TEXT,
    "logr_titulo_1": _TEXT,
    "logr_nome_1": _TEXT,
    "logr_numero_1": _TEXT,
    "logr_complemento_1": _TEXT,
    "bairro_1": _TEXT,
    "cidade_1": _TEXT,
    "uf_1": coerce_upper,
    "cep_1": _DIGITS,
    "tel_fixo_1": _DIGITS,
    "tel_fixo_2": _DIGITS,
    "tel_fixo_3": _DIGITS,
    "tel_cel_1": _DIGITS,
    "tel_cel_2": _DIGITS,
    "tel_cel_3": _DIGITS,
    "email_1": coerce_lower,
    "email_2": coerce_lower,
    "email_3": coerce_lower,
    "nome_mae": _TEXT,
    "nome_pai": _TEXT,
    "naturalidade": _TEXT,
    # contrato
    "contrato": _TEXT,
    "banco_emprestimo": _TEXT,
    "vl_emprestimo": _NUMBER,
    "inicio_desconto": _DATE,
    "prazo": coerce_integer,
    "vl_parcela": _NUMBER,
    "tipo_emprestimo": _TEXT,
    "data_averbacao": _DATE,
    "situacao_emprestimo": _TEXT,
    "competencia": _DATE,
    "competencia_final": _DATE,
    "taxa": _NUMBER,
    "saldo": _NUMBER,
})

_CLIENT_OPTIONAL = (
    "data_nascimento", "sexo", "esp", "dib", "mr", "banco_pagto", "agencia_pagto",
    "orgao_pagador", "conta_corrente", "meio_pagto", "status_beneficio", "bloqueio",
    "pensao_alimenticia", "representante", "ddb", "banco_rmc", "valor_rmc", "banco_rcc",
    "valor_rcc", "bairro", "municipio", "uf", "cep", "endereco", "logr_tipo_1",
    "logr_titulo_1", "logr_nome_1", "logr_numero_1", "logr_complemento_1", "bairro_1",
    "cidade_1", "uf_1", "cep_1", "tel_fixo_1", "tel_fixo_2", "tel_fixo_3", "tel_cel_1",
    "tel_cel_2", "tel_cel_3", "email_1", "email_2", "email_3", "nome_mae", "nome_pai",
    "naturalidade",
)

_CONTRACT_OPTIONAL = (
    "vl_emprestimo", "inicio_desconto", "prazo", "vl_parcela", "tipo_emprestimo",
    "data_averbacao", "situacao_emprestimo", "competencia", "competencia_final",
    "taxa", "saldo",
)


@dataclass(frozen=True)
class RowOutcome:
    """Result of normalizing one data row.

    ``row_index`` is the 0-based data row index; ``row_number`` the file line
    (header is line 1).
    """
    row_index: int
    client: ClientRecord | None = None
    contract: ContractRecord | None = None
    error_type: str | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.client is not None

    @property
    def row_number(self) -> int:
        return self.row_index + 2


def extract_fields(row: RawRow, header_map: HeaderMap) -> dict[str, Cell]:
    """Pick mapped cells; a later non-empty column wins over an earlier one."""
    picked: dict[str, Cell] = {}
    for idx in sorted(header_map.columns):
        cell = row[idx] if idx < len(row) else EMPTY
        if isinstance(cell, Empty):
            continue
        picked[header_map.columns[idx]] = cell
    return picked


def _coerce_all(picked: Mapping[str, Cell]) -> dict[str, Any]:
    return {name: FIELD_COERCIONS[name](cell) for name, cell in picked.items() if name in FIELD_COERCIONS}


def normalize_row(
    row: RawRow,
    header_map: HeaderMap,
    row_index: int,
    imported_by: str | None = None,
    import_job_id: str | None = None,
) -> RowOutcome:
    values = _coerce_all(extract_fields(row, header_map))

    cpf = values.get("cpf")
    if not cpf:
        return RowOutcome(row_index, error_type=MISSING_CPF, reason="missing or invalid CPF")
    nb = values.get("nb")
    if not nb:
        return RowOutcome(row_index, error_type=MISSING_NB, reason="missing NB (benefit number)")
    nome = values.get("nome")
    if not nome:
        return RowOutcome(row_index, error_type=MISSING_NOME, reason="missing NOME (client name)")

    client = ClientRecord(
        cpf=cpf,
        nb=nb,
        nome=nome,
        imported_by=imported_by,
        import_job_id=import_job_id,
        source_row=row_index,
        **{name: values.get(name) for name in _CLIENT_OPTIONAL},
    )

    contract = None
    contrato = values.get("contrato")
    banco = values.get("banco_emprestimo")
    if contrato and banco:
        contract = ContractRecord(
            cpf=cpf,
            contrato=contrato,
            banco_emprestimo=banco,
            source_row=row_index,
            **{name: values.get(name) for name in _CONTRACT_OPTIONAL},
        )

    return RowOutcome(row_index, client=client, contract=contract)


_KEY_FIELDS = frozenset({"cpf", "nb", "nome", "contrato", "banco_emprestimo"})


def row_keys(row: RawRow, header_map: HeaderMap) -> tuple[str, tuple[str, str] | None] | None:
    """(cpf, (cpf, contrato) or None) of a row that would be accepted, else None.

    Only the mandatory and contract key columns are coerced; used to rebuild
    the seen-key sets for rows already handled before a resume offset.
    """
    picked = {k: v for k, v in extract_fields(row, header_map).items() if k in _KEY_FIELDS}
    values = _coerce_all(picked)
    cpf = values.get("cpf")
    if not cpf or not values.get("nb") or not values.get("nome"):
        return None
    contrato = values.get("contrato")
    if contrato and values.get("banco_emprestimo"):
        return cpf, (cpf, contrato)
    return cpf, None
