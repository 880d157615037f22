# === NAVMAP v1 ===
# {
#   "module": "HookedHTTP.errors",
#   "purpose": "Exception hierarchy for HookedHTTP client construction and dispatch",
#   "sections": [
#     {"id": "errors", "name": "Exceptions", "anchor": "ERR", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared across the HookedHTTP client stack.

Only failures that originate in this package live here. Transport failures
(``httpx.HTTPError`` and subclasses) and exceptions raised by caller-supplied
classifiers or refresh procedures are propagated to the caller unchanged.
"""

from __future__ import annotations

__all__ = [
    "HookedHTTPError",
    "ConfigurationError",
    "ClientClosedError",
    "ClientNotBoundError",
]


class HookedHTTPError(RuntimeError):
    """Base exception for HookedHTTP failures."""


class ConfigurationError(HookedHTTPError):
    """Raised when factory options or environment overrides are invalid."""


class ClientClosedError(HookedHTTPError):
    """Raised when a request is issued through a client that was closed."""


class ClientNotBoundError(HookedHTTPError):
    """Raised when a hook resolves its client before the factory bound it."""
