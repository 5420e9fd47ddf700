from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any

"""Normalized import records.

ClientRecord is the primary entity, keyed by ``cpf`` (11 digits, zero padded).
ContractRecord always belongs to exactly one client through the same ``cpf``;
``client_id`` is only known after the client upsert returns it.
"""

__all__ = [
    "ClientRecord",
    "ContractRecord",
    "CLIENT_COLUMNS",
    "CONTRACT_COLUMNS",
]


@dataclass
class ClientRecord:
    cpf: str
    nb: str
    nome: str
    data_nascimento: str | None = None
    sexo: str | None = None
    esp: str | None = None
    dib: str | None = None
    mr: float | None = None
    banco_pagto: str | None = None
    agencia_pagto: str | None = None
    orgao_pagador: str | None = None
    conta_corrente: str | None = None
    meio_pagto: str | None = None
    status_beneficio: str | None = None
    bloqueio: str | None = None
    pensao_alimenticia: str | None = None
    representante: str | None = None
    ddb: str | None = None
    banco_rmc: str | None = None
    valor_rmc: float | None = None
    banco_rcc: str | None = None
    valor_rcc: float | None = None
    bairro: str | None = None
    municipio: str | None = None
    uf: str | None = None
    cep: str | None = None
    endereco: str | None = None
    logr_tipo_1: str | None = None
    logr_titulo_1: str | None = None
    logr_nome_1: str | None = None
    logr_numero_1: str | None = None
    logr_complemento_1: str | None = None
    bairro_1: str | None = None
    cidade_1: str | None = None
    uf_1: str | None = None
    cep_1: str | None = None
    tel_fixo_1: str | None = None
    tel_fixo_2: str | None = None
    tel_fixo_3: str | None = None
    tel_cel_1: str | None = None
    tel_cel_2: str | None = None
    tel_cel_3: str | None = None
    email_1: str | None = None
    email_2: str | None = None
    email_3: str | None = None
    nome_mae: str | None = None
    nome_pai: str | None = None
    naturalidade: str | None = None
    imported_by: str | None = None
    import_job_id: str | None = None
    # 0-based data row index of the first occurrence; not persisted
    source_row: int = 0

    def as_row(self) -> list[Any]:
        """Values in CLIENT_COLUMNS order (for execute_values)."""
        return [getattr(self, c) for c in CLIENT_COLUMNS]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("source_row")
        return data


@dataclass
class ContractRecord:
    cpf: str
    contrato: str
    banco_emprestimo: str
    vl_emprestimo: float | None = None
    inicio_desconto: str | None = None
    prazo: int | None = None
    vl_parcela: float | None = None
    tipo_emprestimo: str | None = None
    data_averbacao: str | None = None
    situacao_emprestimo: str | None = None
    competencia: str | None = None
    competencia_final: str | None = None
    taxa: float | None = None
    saldo: float | None = None
    client_id: Any = None
    # 0-based data row index the contract came from; not persisted
    source_row: int = field(default=0, compare=False)

    @property
    def key(self) -> tuple[str, str]:
        return (self.cpf, self.contrato)

    def as_row(self) -> list[Any]:
        return [getattr(self, c) for c in CONTRACT_COLUMNS]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("source_row")
        return data


CLIENT_COLUMNS: tuple[str, ...] = tuple(f.name for f in fields(ClientRecord) if f.name != "source_row")
CONTRACT_COLUMNS: tuple[str, ...] = tuple(f.name for f in fields(ContractRecord) if f.name != "source_row")
