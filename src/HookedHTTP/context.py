"""Per-request context threaded through the hook chain.

A :class:`RequestContext` wraps the request being dispatched together with the
bookkeeping the hooks need: an opaque identity token for timing correlation and
the refresh marker that stops a replayed request from triggering another
recovery cycle. Hooks never tag the ``httpx.Request`` itself.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum

import httpx

__all__ = [
    "RefreshState",
    "RequestContext",
    "new_request_id",
    "copy_request",
    "clone_response",
]


def new_request_id() -> str:
    """Return a twelve character hexadecimal request identity token."""
    return uuid.uuid4().hex[:12]


class RefreshState(str, Enum):
    """Progress of the refresh coordinator for one request."""

    IDLE = "idle"
    CLASSIFYING = "classifying"
    RECOVERING = "recovering"
    REPLAYING = "replaying"
    DONE = "done"


@dataclass
class RequestContext:
    """Mutable bookkeeping for a single dispatch.

    Attributes:
        request: Request handed to the transport for this dispatch.
        original_request: Request as first built by the caller. Replays share
            it so recovery procedures can always inspect what was asked for.
        request_id: Identity token keying the performance correlator.
        refresh_attempted: Set once a recovery cycle started for this request
            lineage; replays inherit ``True``.
        retry_enabled: Whether transport-level retries may run.
        is_replay: True for dispatches issued by a recovery procedure.
        refresh_state: Current coordinator state, for diagnostics.
    """

    request: httpx.Request
    original_request: httpx.Request
    request_id: str = field(default_factory=new_request_id)
    refresh_attempted: bool = False
    retry_enabled: bool = True
    is_replay: bool = False
    refresh_state: RefreshState = RefreshState.IDLE

    @classmethod
    def for_request(cls, request: httpx.Request) -> "RequestContext":
        return cls(request=request, original_request=request)

    def for_replay(self, request: httpx.Request) -> "RequestContext":
        """Context for re-dispatching ``request`` after a recovery procedure."""
        return replace(
            self,
            request=request,
            request_id=new_request_id(),
            refresh_attempted=True,
            retry_enabled=False,
            is_replay=True,
            refresh_state=RefreshState.IDLE,
        )

    @property
    def method(self) -> str:
        return self.request.method.upper()

    @property
    def path(self) -> str:
        return self.request.url.path or "/"


def copy_request(request: httpx.Request) -> httpx.Request:
    """Return an independent request with the same method, URL, headers and body.

    An unread streaming body is shared with the copy, not duplicated; read
    the request first when the copy must be sent after the original.
    """

    headers = request.headers.copy()
    try:
        body = {"content": request.content}
    except httpx.RequestNotRead:
        body = {"stream": request.stream}
    else:
        # A buffered chunked body goes out with a Content-Length instead.
        headers.pop("transfer-encoding", None)
    return httpx.Request(
        request.method,
        request.url,
        headers=headers,
        extensions=dict(request.extensions),
        **body,
    )


def clone_response(response: httpx.Response) -> httpx.Response:
    """Return a buffered copy of ``response`` that can be read independently.

    The copy holds the already decoded body, so ``Content-Encoding`` is dropped
    to stop httpx from decoding it a second time.
    """

    headers = response.headers.copy()
    headers.pop("content-encoding", None)
    return httpx.Response(
        status_code=response.status_code,
        headers=headers,
        content=response.content,
        request=response.request,
        extensions=dict(response.extensions),
    )
