"""Configuration validation helpers."""

from typing import Optional


def validate_pool_configuration(
    pool_min_size: int,
    pool_max_size: int,
    connect_timeout_seconds: Optional[float] = None,
) -> None:
    """Validate pool configuration parameters.

    Args:
        pool_min_size: Minimum pool size
        pool_max_size: Maximum pool size
        connect_timeout_seconds: Connect timeout in seconds (optional)

    Raises:
        ValueError: If validation fails
    """
    if pool_min_size < 0:
        raise ValueError("pool_min_size must be >= 0")

    if pool_max_size < 1:
        raise ValueError("pool_max_size must be >= 1")

    if pool_max_size < pool_min_size:
        raise ValueError("pool_max_size must be >= pool_min_size")

    if connect_timeout_seconds is not None and connect_timeout_seconds <= 0:
        raise ValueError("connect_timeout_seconds must be > 0")
