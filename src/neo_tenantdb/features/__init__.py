"""Feature modules: adapters, strategies, tenant connections and caching."""
