"""Ordered request/response hook chains.

The chain mirrors the shape of httpx ``event_hooks`` (``request`` and
``response`` lists) but response hooks may return a replacement response,
and every hook receives the :class:`~HookedHTTP.context.RequestContext`.
Hooks may be plain functions or coroutine functions.

Order is fixed by :meth:`HookChain.build`: the logger observes the request
and the response before the refresh coordinator can replace either.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Union

import httpx

from .context import RequestContext
from .refresh import RefreshCoordinator

__all__ = ["RequestHook", "ResponseHook", "HookChain"]

RequestHook = Callable[[RequestContext], Union[None, Awaitable[None]]]
ResponseHook = Callable[
    [RequestContext, httpx.Response],
    Union[None, httpx.Response, Awaitable[Optional[httpx.Response]]],
]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass(frozen=True)
class HookChain:
    request: Tuple[RequestHook, ...] = ()
    response: Tuple[ResponseHook, ...] = ()
    refresh: Optional[RefreshCoordinator] = None

    @classmethod
    def build(
        cls,
        log_request: RequestHook,
        log_response: ResponseHook,
        refresh: RefreshCoordinator,
    ) -> "HookChain":
        """Assemble ``[log]`` on the request side and ``[log, refresh]`` on the response side."""
        return cls(
            request=(log_request,),
            response=(log_response, refresh.after_response),
            refresh=refresh,
        )

    def without_refresh(self) -> "HookChain":
        """Same logging hooks, refresh hook removed."""
        if self.refresh is None:
            return self
        return HookChain(
            request=self.request,
            response=tuple(hook for hook in self.response if hook != self.refresh.after_response),
            refresh=None,
        )

    async def run_request(self, context: RequestContext) -> None:
        for hook in self.request:
            await _resolve(hook(context))

    async def run_response(self, context: RequestContext, response: httpx.Response) -> httpx.Response:
        """Run response hooks in order; a returned response replaces the current one.

        A replaced response is closed once its successor is known.
        """
        for hook in self.response:
            result = await _resolve(hook(context, response))
            if isinstance(result, httpx.Response) and result is not response:
                await response.aclose()
                response = result
        return response
