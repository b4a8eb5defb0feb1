"""Connection descriptor entity."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Everything an adapter needs to open one backend handle.

    Strategies build descriptors; adapters consume them. The same descriptor is
    handed to the external migration runner so migrations target exactly the
    namespace the tenant's connections use.

    Attributes:
        url: Backend URL with any tenant placeholder already substituted
        database: Database name the URL points at, when the strategy knows it
        schema: Active namespace (search path) for the lifetime of the handle
        options: Extra driver keyword arguments
    """

    url: str
    database: Optional[str] = None
    schema: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict)

    def with_schema(self, schema: Optional[str]) -> "ConnectionDescriptor":
        """Return a copy bound to another schema."""
        return replace(self, schema=schema)

    def __repr__(self) -> str:
        # Never leak credentials into logs
        scheme, sep, rest = self.url.partition("://")
        url = self.url
        if sep and "@" in rest:
            url = f"{scheme}://***@{rest.rpartition('@')[2]}"
        return (
            f"ConnectionDescriptor(url={url!r}, database={self.database!r}, "
            f"schema={self.schema!r})"
        )
