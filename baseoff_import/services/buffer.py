from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from ..models.records import ClientRecord, ContractRecord

"""In-memory import buffer.

Clients are keyed by CPF (first occurrence wins), contracts are grouped by
CPF and deduplicated on (cpf, contrato). Insertion order is file order, so
the first buffered client always has the lowest source row.

A resumed import seeds the buffer with the keys of the rows handled before
the pause: those CPFs count as already seen without being buffered again,
and a new contract for such a CPF is kept as an orphan contract whose client
id must be looked up in the store.
"""

__all__ = [
    "AddResult",
    "ImportBuffer",
]


@dataclass(frozen=True)
class AddResult:
    client_added: bool
    contract_added: bool = False
    contract_duplicate: bool = False


class ImportBuffer:
    def __init__(self) -> None:
        self.clients: dict[str, ClientRecord] = {}
        self.contracts: dict[str, list[ContractRecord]] = {}
        self._contract_keys: set[tuple[str, str]] = set()
        self._seeded_cpfs: set[str] = set()

    def __len__(self) -> int:
        return len(self.clients)

    def __iter__(self) -> Iterator[ClientRecord]:
        return iter(self.clients.values())

    @property
    def contract_count(self) -> int:
        return sum(len(v) for v in self.contracts.values())

    def seed(self, cpfs: Iterable[str], contract_keys: Iterable[tuple[str, str]] = ()) -> None:
        """Mark keys of already imported rows as seen."""
        self._seeded_cpfs.update(cpfs)
        self._contract_keys.update(contract_keys)

    def add(self, client: ClientRecord, contract: ContractRecord | None = None) -> AddResult:
        """Buffer one normalized row.

        A duplicate client row does not replace the buffered client, but its
        contract is still taken when the (cpf, contrato) pair is new.
        """
        client_added = client.cpf not in self.clients and client.cpf not in self._seeded_cpfs
        if client_added:
            self.clients[client.cpf] = client

        if contract is None:
            return AddResult(client_added)
        if contract.key in self._contract_keys:
            return AddResult(client_added, contract_duplicate=True)
        self._contract_keys.add(contract.key)
        self.contracts.setdefault(contract.cpf, []).append(contract)
        return AddResult(client_added, contract_added=True)

    def contracts_for(self, cpf: str) -> list[ContractRecord]:
        return self.contracts.get(cpf, [])

    def orphan_contracts(self) -> list[ContractRecord]:
        """Contracts of seeded CPFs (their client is not in this buffer)."""
        orphans = [c for cpf, items in self.contracts.items() if cpf not in self.clients for c in items]
        return sorted(orphans, key=lambda c: c.source_row)

    def clear(self) -> None:
        """Drop buffered records; (cpf, contrato) keys already seen stay known."""
        self.clients.clear()
        self.contracts.clear()
