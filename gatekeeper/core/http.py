"""HTTP client factory for the SMS gateway.

One pooled ``httpx.AsyncClient`` per provider, created lazily and closed from
the application lifespan.
"""

import httpx

DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_READ_TIMEOUT = 10.0
DEFAULT_WRITE_TIMEOUT = 10.0
DEFAULT_POOL_TIMEOUT = 5.0

_sms_client: httpx.AsyncClient | None = None


def create_http_client(
    base_url: str = "",
    max_connections: int = 20,
    max_keepalive_connections: int = 10,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    read_timeout: float = DEFAULT_READ_TIMEOUT,
    write_timeout: float = DEFAULT_WRITE_TIMEOUT,
    pool_timeout: float = DEFAULT_POOL_TIMEOUT,
    headers: dict[str, str] | None = None,
) -> httpx.AsyncClient:
    """Create a configured async HTTP client.

    Args:
        base_url: Base URL for all requests (empty string for none)
        max_connections: Maximum number of concurrent connections
        max_keepalive_connections: Maximum idle connections to keep alive
        connect_timeout: Timeout for establishing connection
        read_timeout: Timeout for reading response
        write_timeout: Timeout for sending request
        pool_timeout: Timeout for acquiring connection from pool
        headers: Default headers sent with every request

    Returns:
        Configured httpx.AsyncClient instance
    """
    return httpx.AsyncClient(
        base_url=base_url,
        headers=headers,
        timeout=httpx.Timeout(
            connect=connect_timeout,
            read=read_timeout,
            write=write_timeout,
            pool=pool_timeout,
        ),
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
        ),
    )


def get_sms_client() -> httpx.AsyncClient:
    """Get the shared client for SMS gateway calls.

    OTP delivery is low volume, so the pool is small.
    """
    global _sms_client
    if _sms_client is None:
        _sms_client = create_http_client(
            max_connections=10,
            max_keepalive_connections=5,
            headers={"Accept": "application/json"},
        )
    return _sms_client


async def close_sms_client() -> None:
    """Close the SMS client during application shutdown."""
    global _sms_client
    if _sms_client is not None:
        await _sms_client.aclose()
        _sms_client = None
