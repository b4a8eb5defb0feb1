"""Protocols consumed by the adapter and strategy layers."""

from abc import abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from .descriptor import ConnectionDescriptor

# Filter trees: {"field": value, "AND": [...], "OR": [...], "NOT": {...}}
FilterTree = Mapping[str, Any]
Record = Dict[str, Any]
OrderBy = Optional[Union[str, Sequence[str]]]


@runtime_checkable
class MigrationRunner(Protocol):
    """External migration runner.

    The core's only responsibility is handing it a correctly scoped descriptor.
    """

    @abstractmethod
    async def run_migrations(self, descriptor: ConnectionDescriptor) -> None:
        """Run pending migrations against the namespace described."""
        ...


@runtime_checkable
class QueryContract(Protocol):
    """Record operations every tenant connection exposes."""

    async def insert(self, collection: str, record: Mapping[str, Any]) -> int:
        ...

    async def insert_many(self, collection: str, records: Sequence[Mapping[str, Any]]) -> int:
        ...

    async def find(
        self,
        collection: str,
        where: Optional[FilterTree] = None,
        limit: Optional[int] = None,
        order_by: OrderBy = None,
    ) -> List[Any]:
        ...

    async def update(self, collection: str, where: Optional[FilterTree], values: Mapping[str, Any]) -> int:
        ...

    async def delete(self, collection: str, where: Optional[FilterTree] = None) -> int:
        ...

    async def count(self, collection: str, where: Optional[FilterTree] = None) -> int:
        ...
