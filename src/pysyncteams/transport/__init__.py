"""
Transport module - one logical HTTP call per request.

This module contains the transport components:
- http_client: HttpClient with timeouts, retries and backoff
- cancellation: CancellationToken, cancellable sleep, racing helpers
"""

from pysyncteams.transport.cancellation import CancellationToken, run_cancellable, sleep
from pysyncteams.transport.http_client import (
    API_KEY_HEADER,
    HttpClient,
    build_user_agent,
    is_transient_network_error,
)

__all__ = [
    "HttpClient",
    "API_KEY_HEADER",
    "build_user_agent",
    "is_transient_network_error",
    "CancellationToken",
    "sleep",
    "run_cancellable",
]
