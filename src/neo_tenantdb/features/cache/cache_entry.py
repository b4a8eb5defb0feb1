"""Connection cache entries."""

from dataclasses import dataclass

from ..middleware.tenant_connection import TenantConnection


@dataclass
class CacheEntry:
    """One cached tenant connection.

    ``created_at`` is never refreshed: a hit only bumps ``hits``, so an entry
    expires ``ttl`` seconds after it was established no matter how busy it is.
    """

    tenant_id: str
    connection: TenantConnection
    created_at: float
    hits: int = 0

    def age(self, now: float) -> float:
        return now - self.created_at

    def is_expired(self, now: float, ttl: float) -> bool:
        return self.age(now) >= ttl

    @property
    def usable(self) -> bool:
        return not self.connection.closing
