# === NAVMAP v1 ===
# {
#   "module": "HookedHTTP.refresh",
#   "purpose": "Re-authenticate and replay requests whose responses are classified unauthorized",
#   "sections": [
#     {"id": "types", "name": "Callable types", "anchor": "TYP", "kind": "types"},
#     {"id": "client-ref", "name": "ClientRef", "anchor": "REF", "kind": "api"},
#     {"id": "coordinator", "name": "RefreshCoordinator", "anchor": "COORD", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Refresh coordinator: recover from unauthorized responses exactly once.

The coordinator is the last response hook of a client. For every response it
walks a small state machine (see :class:`~HookedHTTP.context.RefreshState`)::

    IDLE -> CLASSIFYING -> RECOVERING -> REPLAYING -> DONE
      \\           \\            \\
       +-----------+------------+-----------------> DONE

1. Nothing happens unless both a classifier and a refresh procedure were
   configured.
2. A context already carrying the refresh marker goes straight to ``DONE``;
   the classifier is not even called. Replays always carry the marker, so a
   replay that is still unauthorized is returned as-is.
3. The classifier sees a clone of the response.
4. On a positive classification the marker is set *before* the refresh
   procedure runs. The procedure receives a copy of the request, a ``replay``
   coroutine function and a fresh client without the refresh hook.
   The request body is buffered first; a streamed body the transport
   already consumed cannot be replayed, so recovery is skipped with a
   warning.
5. The effective response is whatever the procedure returned (if it is an
   ``httpx.Response``), otherwise the last replayed response, otherwise the
   original response.

Exceptions from the classifier or the refresh procedure are not caught.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Awaitable, Callable, List, Optional, Union

import httpx

from .classifiers import UnauthorizedClassifier, classify
from .context import RefreshState, RequestContext, clone_response, copy_request
from .errors import ClientNotBoundError

if TYPE_CHECKING:
    from .client import HttpClient

__all__ = ["Replay", "RefreshProcedure", "ClientRef", "RefreshCoordinator"]

LOGGER = logging.getLogger("HookedHTTP.refresh")

# --- Callable types --------------------------------------------------------------

Replay = Callable[[httpx.Request], Awaitable[httpx.Response]]
RefreshProcedure = Callable[
    [httpx.Request, Replay, "HttpClient"],
    Union[None, httpx.Response, Awaitable[Optional[httpx.Response]]],
]

# --- ClientRef -------------------------------------------------------------------


class ClientRef:
    """Deferred accessor for the client a hook chain is attached to.

    Hooks are assembled before the client exists, so they capture this object
    and the factory binds the finished client afterwards.
    """

    def __init__(self) -> None:
        self._client: Optional["HttpClient"] = None

    def bind(self, client: "HttpClient") -> None:
        self._client = client

    def __call__(self) -> "HttpClient":
        if self._client is None:
            raise ClientNotBoundError("hook chain used before its client was bound")
        return self._client


# --- RefreshCoordinator ----------------------------------------------------------


class RefreshCoordinator:
    """Response hook that runs the caller's refresh procedure and replays."""

    def __init__(
        self,
        classifier: Optional[UnauthorizedClassifier],
        recover: Optional[RefreshProcedure],
        get_client: Callable[[], "HttpClient"],
    ) -> None:
        self.classifier = classifier
        self.recover = recover
        self._get_client = get_client

    @property
    def enabled(self) -> bool:
        return self.classifier is not None and self.recover is not None

    async def after_response(
        self, context: RequestContext, response: httpx.Response
    ) -> Optional[httpx.Response]:
        if not self.enabled:
            return None

        if context.refresh_attempted:
            context.refresh_state = RefreshState.DONE
            LOGGER.debug(
                "refresh already attempted; returning response as-is",
                extra={"request_id": context.request_id, "status": response.status_code},
            )
            return None

        context.refresh_state = RefreshState.CLASSIFYING
        await response.aread()
        if not await classify(self.classifier, clone_response(response)):
            context.refresh_state = RefreshState.DONE
            return None

        try:
            # Buffer the body so the copy handed to the procedure can be sent again.
            await context.request.aread()
        except httpx.StreamConsumed:
            context.refresh_state = RefreshState.DONE
            LOGGER.warning(
                "unauthorized response to a streamed request body that cannot be replayed; "
                "refresh skipped",
                extra={"request_id": context.request_id, "status": response.status_code},
            )
            return None

        context.refresh_state = RefreshState.RECOVERING
        context.refresh_attempted = True
        client = self._get_client()
        replayed: List[httpx.Response] = []

        async def replay(request: httpx.Request) -> httpx.Response:
            context.refresh_state = RefreshState.REPLAYING
            result = await client.send(request, context=context.for_replay(request))
            replayed.append(result)
            return result

        LOGGER.info(
            "unauthorized response; running refresh procedure",
            extra={
                "request_id": context.request_id,
                "extra_fields": {
                    "event": "http.refresh",
                    "method": context.method,
                    "path": context.path,
                    "status": response.status_code,
                },
            },
        )
        try:
            outcome = self.recover(copy_request(context.request), replay, client.without_refresh())
            if inspect.isawaitable(outcome):
                outcome = await outcome
        finally:
            context.refresh_state = RefreshState.DONE

        if isinstance(outcome, httpx.Response):
            return outcome
        if replayed:
            return replayed[-1]
        LOGGER.debug(
            "refresh procedure declined to replay",
            extra={"request_id": context.request_id},
        )
        return None
