"""HookedHTTP: httpx clients with request logging and credential refresh.

The package exposes one factory, :func:`create_http_client`, returning an
:class:`HttpClient` whose requests flow through an ordered hook chain:

- a logger emitting ``[REQ]``/``[RES]`` groups with elapsed time, and
- a refresh coordinator that, for responses the caller classifies as
  unauthorized, runs the caller's refresh procedure and replays the request
  exactly once.

Example:
    >>> from HookedHTTP import create_http_client, status_classifier
    >>> client = create_http_client("https://api.example.com", logging=True)
"""

from .classifiers import UnauthorizedClassifier, classify, status_classifier
from .client import HttpClient, create_http_client
from .context import RefreshState, RequestContext
from .errors import (
    ClientClosedError,
    ClientNotBoundError,
    ConfigurationError,
    HookedHTTPError,
)
from .hooks import HookChain
from .instrumentation import RequestLogger
from .logging_utils import JSONFormatter, setup_logging
from .refresh import ClientRef, RefreshCoordinator, RefreshProcedure, Replay
from .settings import ClientConfiguration, LoggingSettings, RetrySettings
from .timing import PerformanceCorrelator

__version__ = "0.1.0"

__all__ = [
    # Factory and client
    "create_http_client",
    "HttpClient",
    # Hooks
    "HookChain",
    "RequestContext",
    "RefreshState",
    "RequestLogger",
    "PerformanceCorrelator",
    "RefreshCoordinator",
    "RefreshProcedure",
    "Replay",
    "ClientRef",
    # Classifiers
    "UnauthorizedClassifier",
    "classify",
    "status_classifier",
    # Configuration
    "ClientConfiguration",
    "RetrySettings",
    "LoggingSettings",
    # Logging
    "JSONFormatter",
    "setup_logging",
    # Errors
    "HookedHTTPError",
    "ConfigurationError",
    "ClientClosedError",
    "ClientNotBoundError",
]
