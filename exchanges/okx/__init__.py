"""
OKX exchange adapters.

The single REST client covers both the demo (simulated) and live endpoints.
"""

from .client import OkxClient, OkxClientError, OkxOrderNotFoundError, build_okx_client  # noqa: F401
