# === NAVMAP v1 ===
# {
#   "module": "HookedHTTP.instrumentation",
#   "purpose": "Request/response log groups with timing for HookedHTTP clients",
#   "sections": [
#     {"id": "constants", "name": "Placeholders", "anchor": "CONST", "kind": "constants"},
#     {"id": "logger", "name": "RequestLogger", "anchor": "LOG", "kind": "api"},
#     {"id": "helpers", "name": "Body rendering helpers", "anchor": "HELP", "kind": "helpers"}
#   ]
# }
# === /NAVMAP ===

"""Structured request/response logging for the hook chain.

Each dispatch produces two log groups on the ``HookedHTTP.instrumentation``
logger, one record per group::

    [REQ] POST /users
    Request Body: {'name': 'ada'}

    [RES] POST /users - 201
    Time: 12.34567ms
    Response Body: {'id': 7}

Decoded JSON bodies pass through :func:`~HookedHTTP.logging_utils.mask_value`
before they are formatted, so token, password and similar keys never reach a
log line.

Records also carry ``extra_fields`` (method, path, status, elapsed_ms,
request_id, body) for :class:`HookedHTTP.logging_utils.JSONFormatter`.

Timing uses a :class:`~HookedHTTP.timing.PerformanceCorrelator`; the request
hook records the start, the response hook consumes it. When logging is
disabled :func:`build_logging_hooks` installs no-op hooks and no timing is
recorded at all.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional, Tuple

import httpx

from .context import RequestContext, clone_response
from .logging_utils import mask_value
from .timing import PerformanceCorrelator

__all__ = [
    "NO_REQUEST_BODY",
    "STREAMING_REQUEST_BODY",
    "RequestLogger",
    "build_logging_hooks",
    "noop_request_hook",
    "noop_response_hook",
]

LOGGER = logging.getLogger("HookedHTTP.instrumentation")

# --- Placeholders ----------------------------------------------------------------

NO_REQUEST_BODY = "(No Request Body)"
STREAMING_REQUEST_BODY = "(Streaming Request Body)"


def noop_request_hook(context: RequestContext) -> None:
    return None


def noop_response_hook(context: RequestContext, response: httpx.Response) -> None:
    return None


# --- RequestLogger ---------------------------------------------------------------


class RequestLogger:
    """Emit ``[REQ]``/``[RES]`` log groups around each dispatch."""

    def __init__(
        self,
        correlator: PerformanceCorrelator,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.correlator = correlator
        self.logger = logger or LOGGER

    def before_request(self, context: RequestContext) -> None:
        """Record the start time and log method, path and request body."""

        self.correlator.record_start(context.request_id)
        body = mask_value(render_request_body(context.request))
        self.logger.info(
            "[REQ] %s %s\nRequest Body: %s",
            context.method,
            context.path,
            body,
            extra={
                "request_id": context.request_id,
                "extra_fields": {
                    "event": "http.request",
                    "method": context.method,
                    "path": context.path,
                    "body": body,
                },
            },
        )

    async def after_response(self, context: RequestContext, response: httpx.Response) -> None:
        """Log status, elapsed time and body of ``response``.

        The body is read from a clone so the response the caller (and any
        later hook) sees is left exactly as the transport produced it.
        """

        elapsed_ms = self.correlator.consume_elapsed(context.request_id)
        await response.aread()
        body = mask_value(render_response_body(clone_response(response)))

        lines = ["[RES] %s %s - %d"]
        args: list = [context.method, context.path, response.status_code]
        if elapsed_ms is not None:
            lines.append("Time: %.5fms")
            args.append(elapsed_ms)
        lines.append("Response Body: %s")
        args.append(body)

        self.logger.info(
            "\n".join(lines),
            *args,
            extra={
                "request_id": context.request_id,
                "extra_fields": {
                    "event": "http.response",
                    "method": context.method,
                    "path": context.path,
                    "status": response.status_code,
                    "elapsed_ms": elapsed_ms,
                    "body": body,
                },
            },
        )


def build_logging_hooks(
    enabled: bool,
    correlator: PerformanceCorrelator,
    logger: Optional[logging.Logger] = None,
) -> Tuple[Callable[..., Any], Callable[..., Any]]:
    """Return the ``(request_hook, response_hook)`` pair for a hook chain."""

    if not enabled:
        return noop_request_hook, noop_response_hook
    request_logger = RequestLogger(correlator, logger)
    return request_logger.before_request, request_logger.after_response


# --- Body rendering helpers ------------------------------------------------------


def render_request_body(request: httpx.Request) -> Any:
    """Return the request body as logged: decoded JSON, text, or a placeholder."""

    try:
        content = request.content
    except httpx.RequestNotRead:
        return STREAMING_REQUEST_BODY
    if not content:
        return NO_REQUEST_BODY

    content_type = request.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return json.loads(content)
        except ValueError:
            pass
    try:
        return content.decode(_charset(content_type))
    except (LookupError, UnicodeDecodeError):
        return repr(content)


def render_response_body(response: httpx.Response) -> Any:
    """Read ``response`` as JSON, falling back to text for non-JSON or empty bodies."""

    try:
        return response.json()
    except ValueError:
        return response.text


def _charset(content_type: str) -> str:
    for part in content_type.split(";")[1:]:
        key, _, value = part.strip().partition("=")
        if key.lower() == "charset" and value:
            return value.strip('"')
    return "utf-8"
