# === NAVMAP v1 ===
# {
#   "module": "HookedHTTP.client",
#   "purpose": "HTTPX client factory wiring logging and refresh hook chains",
#   "sections": [
#     {"id": "client", "name": "HttpClient", "anchor": "CLI", "kind": "api"},
#     {"id": "helpers", "name": "Client construction helpers", "anchor": "HELP", "kind": "helpers"},
#     {"id": "factory", "name": "create_http_client", "anchor": "FACT", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""HTTPX client factory with request/response logging and credential refresh.

Key design:
- **Pass-through transport**: an ``httpx.AsyncClient`` owns connections,
  redirects, timeouts and wire encoding. This module only builds requests
  from the configured defaults and runs the hook chain around ``send``.
- **Two-phase build**: hooks are assembled first and capture a
  :class:`~HookedHTTP.refresh.ClientRef`; the ref is bound once the
  :class:`HttpClient` exists, so the refresh coordinator can replay through
  the very client it is attached to.
- **Shared pool**: clients derived with :meth:`HttpClient.extend` or handed
  to refresh procedures reuse the root client's connection pool, hook chain
  and timing correlator. Only the root closes the pool.

Example:
    >>> from HookedHTTP import create_http_client, status_classifier
    >>> async def refresh(request, replay, client):
    ...     token = (await client.post("auth/refresh")).json()["token"]
    ...     request.headers["Authorization"] = f"Bearer {token}"
    ...     return await replay(request)
    >>> api = create_http_client(
    ...     "https://api.example.com/v1",
    ...     logging=True,
    ...     is_unauthorized_response=status_classifier(401),
    ...     refresh=refresh,
    ...     headers={"Accept": "application/json"},
    ... )
    >>> response = await api.get("users")  # doctest: +SKIP
"""

from __future__ import annotations

import logging
import ssl
from typing import Any, Optional

import certifi
import httpx

from .classifiers import UnauthorizedClassifier
from .context import RequestContext
from .errors import ClientClosedError
from .hooks import HookChain
from .instrumentation import build_logging_hooks
from .refresh import ClientRef, RefreshCoordinator, RefreshProcedure
from .retry import send_with_retry
from .settings import ClientConfiguration, EnvironmentOverrides, build_configuration
from .timing import PerformanceCorrelator

__all__ = ["HttpClient", "create_http_client"]

LOGGER = logging.getLogger("HookedHTTP.client")

_CREDENTIAL_HEADERS = ("authorization", "cookie")

# --- HttpClient ------------------------------------------------------------------


class HttpClient:
    """Client returned by :func:`create_http_client`.

    Verb methods mirror ``httpx.AsyncClient`` and return ``httpx.Response``.
    Relative URLs are resolved against ``config.base_url``.
    """

    def __init__(
        self,
        config: ClientConfiguration,
        *,
        transport_client: httpx.AsyncClient,
        hooks: HookChain,
        correlator: PerformanceCorrelator,
        owns_transport: bool = True,
    ) -> None:
        self._config = config
        self._transport_client = transport_client
        self._hooks = hooks
        self._correlator = correlator
        self._owns_transport = owns_transport
        self._closed = False

    @property
    def config(self) -> ClientConfiguration:
        return self._config

    @property
    def hooks(self) -> HookChain:
        return self._hooks

    @property
    def correlator(self) -> PerformanceCorrelator:
        return self._correlator

    @property
    def is_closed(self) -> bool:
        return self._closed or self._transport_client.is_closed

    def merge_url(self, url: httpx.URL | str) -> httpx.URL:
        """Resolve ``url`` against the base URL; absolute URLs pass through."""
        target = httpx.URL(url)
        if target.is_absolute_url:
            return target
        return httpx.URL(self._config.base_url + str(target).lstrip("/"))

    def build_request(
        self,
        method: str,
        url: httpx.URL | str,
        *,
        params: Any = None,
        headers: Any = None,
        cookies: Any = None,
        content: Any = None,
        data: Any = None,
        files: Any = None,
        json: Any = None,
        timeout: Any = None,
        extensions: Optional[dict] = None,
    ) -> httpx.Request:
        """Build a request with the configured default headers, params and timeout."""

        merged_headers = httpx.Headers(self._config.headers)
        if headers is not None:
            merged_headers.update(httpx.Headers(headers))
        merged_params = httpx.QueryParams(self._config.params)
        if params is not None:
            merged_params = merged_params.merge(params)
        scoped_cookies = self._config.request_options.get("cookies")
        if scoped_cookies is not None:
            merged_cookies = httpx.Cookies(scoped_cookies)
            if cookies is not None:
                merged_cookies.update(httpx.Cookies(cookies))
            cookies = merged_cookies
        if timeout is None:
            timeout = self._config.timeout if self._config.timeout is not None else httpx.USE_CLIENT_DEFAULT

        return self._transport_client.build_request(
            method.upper(),
            self.merge_url(url),
            params=merged_params,
            headers=merged_headers,
            cookies=cookies,
            content=content,
            data=data,
            files=files,
            json=json,
            timeout=timeout,
            extensions=extensions,
        )

    async def request(self, method: str, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.send(self.build_request(method, url, **kwargs))

    async def send(
        self,
        request: httpx.Request,
        *,
        context: Optional[RequestContext] = None,
    ) -> httpx.Response:
        """Run the hook chain around one dispatch of ``request``.

        Args:
            request: Request to dispatch (usually from :meth:`build_request`).
            context: Existing context, supplied by the refresh coordinator for
                replays. A new one is created otherwise.

        Returns:
            The effective response after every response hook ran.

        Raises:
            ClientClosedError: If this client was closed.
            httpx.HTTPStatusError: For 4xx/5xx when ``raise_for_status`` is set
                (outermost dispatch only, replays return their response).
            httpx.HTTPError: Transport failures, unchanged.
        """

        if self.is_closed:
            raise ClientClosedError("cannot send a request with a closed client")

        context = context or RequestContext.for_request(request)
        self._apply_credentials(context.request)
        await self._hooks.run_request(context)

        retry = self._config.retry if context.retry_enabled else None
        response = await send_with_retry(self._dispatch, context.request, retry)
        response = await self._hooks.run_response(context, response)

        # Replays hand their response to the refresh procedure, never raise there.
        if self._config.raise_for_status and not context.is_replay:
            response.raise_for_status()
        return response

    async def get(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def head(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("HEAD", url, **kwargs)

    async def options(self, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        return await self.request("OPTIONS", url, **kwargs)

    def extend(self, **options: Any) -> "HttpClient":
        """Derive a client with ``options`` merged into the current defaults.

        Headers, params and cookies are merged key by key, other options
        replace the current value. The derived client shares the hook chain,
        timing correlator and connection pool with this one, so options that
        configure the pool or the hooks raise :class:`ConfigurationError`.
        """

        return HttpClient(
            self._config.merged(**options),
            transport_client=self._transport_client,
            hooks=self._hooks,
            correlator=self._correlator,
            owns_transport=False,
        )

    def without_refresh(self) -> "HttpClient":
        """Derived client used during recovery: no refresh hook, no retries."""

        return HttpClient(
            self._config.merged(retry=None),
            transport_client=self._transport_client,
            hooks=self._hooks.without_refresh(),
            correlator=self._correlator,
            owns_transport=False,
        )

    async def aclose(self) -> None:
        """Close the client; the connection pool closes only from its owner."""
        if self._closed:
            return
        self._closed = True
        if self._owns_transport:
            await self._transport_client.aclose()
            self._correlator.clear()
            LOGGER.debug("HookedHTTP client closed", extra={"base_url": self._config.base_url})

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"<HttpClient base_url={self._config.base_url!r} closed={self.is_closed}>"

    async def _dispatch(self, request: httpx.Request) -> httpx.Response:
        return await self._transport_client.send(
            request,
            auth=self._config.request_options.get("auth", httpx.USE_CLIENT_DEFAULT),
            follow_redirects=self._config.follow_redirects,
        )

    def _apply_credentials(self, request: httpx.Request) -> None:
        mode = self._config.credentials
        if mode == "include":
            return
        if mode == "same-origin":
            url = request.url
            if (url.scheme, url.host, url.port) == self._config.origin:
                return
        for header in _CREDENTIAL_HEADERS:
            request.headers.pop(header, None)


# --- Client construction helpers -------------------------------------------------


def _build_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.load_verify_locations(certifi.where())
    return context


def _build_transport_client(config: ClientConfiguration) -> httpx.AsyncClient:
    options = dict(config.client_options)
    if "transport" not in options:
        options.setdefault("verify", _build_ssl_context())
    return httpx.AsyncClient(**options)


# --- create_http_client -----------------------------------------------------------


def create_http_client(
    base_url: str,
    *,
    logging: Optional[bool] = None,
    is_unauthorized_response: Optional[UnauthorizedClassifier] = None,
    refresh: Optional[RefreshProcedure] = None,
    env: Optional[EnvironmentOverrides] = None,
    **transport_options: Any,
) -> HttpClient:
    """Create a client for ``base_url`` with logging and refresh hooks wired in.

    Args:
        base_url: Absolute http(s) URL prefixed to relative request URLs.
        logging: Emit ``[REQ]``/``[RES]`` log groups. ``None`` defers to
            ``HOOKEDHTTP_LOGGING`` (default off).
        is_unauthorized_response: Classifier deciding when to refresh.
        refresh: Refresh procedure ``(request, replay, client)``. Refresh runs
            only when a classifier is configured as well.
        env: Environment overrides (defaults to the process-wide cache).
        **transport_options: ``headers``, ``params``, ``timeout``,
            ``follow_redirects``, ``raise_for_status``, ``credentials`` and
            ``retry`` are applied by the client; anything else goes to
            ``httpx.AsyncClient`` unchanged.

    Returns:
        A ready-to-use :class:`HttpClient`.

    Raises:
        ConfigurationError: If an option fails validation.
    """

    config = build_configuration(base_url, logging=logging, env=env, **transport_options)

    if (is_unauthorized_response is None) != (refresh is None):
        LOGGER.warning(
            "refresh needs both is_unauthorized_response and refresh; refresh disabled",
            extra={"base_url": config.base_url},
        )

    correlator = PerformanceCorrelator()
    client_ref = ClientRef()
    log_request, log_response = build_logging_hooks(config.logging, correlator)
    coordinator = RefreshCoordinator(is_unauthorized_response, refresh, client_ref)
    hooks = HookChain.build(log_request, log_response, coordinator)

    client = HttpClient(
        config,
        transport_client=_build_transport_client(config),
        hooks=hooks,
        correlator=correlator,
    )
    client_ref.bind(client)

    LOGGER.debug(
        "HookedHTTP client created",
        extra={
            "base_url": config.base_url,
            "logging": config.logging,
            "refresh": coordinator.enabled,
            "retry_limit": config.retry.limit if config.retry else 0,
        },
    )
    return client
