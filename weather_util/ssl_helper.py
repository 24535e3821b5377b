"""
SSL Helper for Certificate Store Integration

Builds the ``ssl.SSLContext`` handed to httpx as ``verify=``.

Priority:
1. WEATHER_UTIL_CA_BUNDLE environment variable (explicit PEM override,
   for corporate proxies that re-sign TLS traffic)
2. certifi CA bundle (standard Mozilla CA bundle)
"""

import logging
import os
import ssl

import certifi

logger = logging.getLogger(__name__)

CA_BUNDLE_ENV = "WEATHER_UTIL_CA_BUNDLE"

# Cache the SSLContext for process lifetime
_cached_ssl_context: ssl.SSLContext | None = None


def get_ca_bundle() -> str:
    """
    Get the path of the PEM bundle to trust.

    Returns:
        Path to CA bundle file
    """
    env_bundle = os.getenv(CA_BUNDLE_ENV)
    if env_bundle:
        if os.path.exists(env_bundle):
            logger.info(f"[ssl_helper] Using CA bundle from env: {env_bundle}")
            return env_bundle
        logger.warning(f"[ssl_helper] {CA_BUNDLE_ENV} path not found: {env_bundle}")

    return certifi.where()


def get_httpx_verify() -> ssl.SSLContext:
    """
    Get an ssl.SSLContext for httpx loaded with the selected CA bundle.

    Returns:
        ssl.SSLContext configured for HTTPS with proper CA certs.
    """
    global _cached_ssl_context

    if _cached_ssl_context is not None:
        return _cached_ssl_context

    bundle = get_ca_bundle()
    ctx = ssl.create_default_context(cafile=bundle)
    logger.debug(f"[ssl_helper] httpx SSLContext loaded from {bundle}")

    _cached_ssl_context = ctx
    return ctx
