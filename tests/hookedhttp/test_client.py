# === NAVMAP v1 ===
# {
#   "module": "tests.hookedhttp.test_client",
#   "purpose": "Validates the client factory, request building, extend and retries",
#   "sections": [
#     {"id": "factory", "name": "Factory and URL handling", "anchor": "FACT", "kind": "tests"},
#     {"id": "extend", "name": "extend()", "anchor": "EXT", "kind": "tests"},
#     {"id": "credentials", "name": "Credentials policy", "anchor": "CRED", "kind": "tests"},
#     {"id": "retry", "name": "Retries", "anchor": "RETRY", "kind": "tests"},
#     {"id": "lifecycle", "name": "Lifecycle", "anchor": "LIFE", "kind": "tests"}
#   ]
# }
# === /NAVMAP ===

"""Validates the client factory, request building, extend and retries."""

from __future__ import annotations

import base64

import httpx
import pytest

from HookedHTTP import ClientClosedError, ConfigurationError, HttpClient, status_classifier
from HookedHTTP.refresh import ClientRef

from tests.fixtures.http_mocking import json_body

NO_BACKOFF = {"limit": 2, "backoff_multiplier": 0.0, "backoff_limit": 0.0}


# --- Factory and URL handling --------------------------------------------------


@pytest.mark.asyncio
async def test_relative_urls_resolve_against_base_url(make_client, backend):
    backend.json("GET", "/v1/users/1", 200, {"id": 1})
    client = make_client()

    for url in ("users/1", "/users/1"):
        response = await client.get(url)
        assert response.status_code == 200

    assert [str(r.url) for r in backend.requests] == ["https://api.example.test/v1/users/1"] * 2


@pytest.mark.asyncio
async def test_absolute_urls_pass_through(make_client, backend):
    backend.json("GET", "/other", 200, {})
    client = make_client()

    await client.get("https://api.example.test/other")

    assert backend.requests[0].url.path == "/other"


@pytest.mark.asyncio
async def test_default_headers_and_params_merge_with_call_options(make_client, backend):
    backend.json("GET", "/v1/search", 200, [])
    client = make_client(headers={"Accept": "application/json", "X-App": "a"}, params={"lang": "en"})

    await client.get("search", headers={"X-App": "b"}, params={"q": "ada"})

    sent = backend.requests[0]
    assert sent.headers["accept"] == "application/json"
    assert sent.headers["x-app"] == "b"
    assert dict(sent.url.params) == {"lang": "en", "q": "ada"}


@pytest.mark.asyncio
async def test_json_body_reaches_transport(make_client, backend):
    backend.json("POST", "/v1/users", 201, {"id": 1})
    client = make_client()

    await client.post("users", json={"name": "ada"})

    assert json_body(backend.requests[0]) == {"name": "ada"}


def test_unrecognised_options_are_forwarded_to_httpx(make_client):
    client = make_client(follow_redirects=True, trust_env=False, http2=False)

    assert client.config.follow_redirects is True
    assert client.config.client_options["trust_env"] is False
    assert "follow_redirects" not in client.config.client_options


def test_factory_binds_client_ref(make_client):
    client = make_client(is_unauthorized_response=status_classifier(), refresh=lambda *a: None)
    coordinator = client.hooks.refresh

    assert coordinator.enabled
    assert isinstance(coordinator._get_client, ClientRef)
    assert coordinator._get_client() is client


def test_hook_chain_order_is_log_then_refresh(make_client):
    client = make_client(logging=True, is_unauthorized_response=status_classifier(), refresh=lambda *a: None)

    assert len(client.hooks.request) == 1
    assert len(client.hooks.response) == 2
    assert client.hooks.response[1] == client.hooks.refresh.after_response


@pytest.mark.asyncio
async def test_raise_for_status_raises_after_hooks(make_client, backend):
    backend.json("GET", "/v1/missing", 404, {})
    client = make_client(raise_for_status=True)

    with pytest.raises(httpx.HTTPStatusError):
        await client.get("missing")


@pytest.mark.asyncio
async def test_raise_for_status_still_lets_refresh_recover(make_client, backend):
    def reply(request):
        if request.headers.get("authorization") == "Bearer fresh":
            return httpx.Response(200, json={})
        return httpx.Response(401, json={})

    backend.add("GET", "/v1/me", reply)

    async def refresh(request, replay, client):
        request.headers["Authorization"] = "Bearer fresh"
        return await replay(request)

    client = make_client(
        raise_for_status=True,
        is_unauthorized_response=status_classifier(),
        refresh=refresh,
    )

    response = await client.get("me")

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_raise_for_status_does_not_raise_inside_refresh(make_client, backend):
    backend.add("GET", "/v1/me", httpx.Response(401), httpx.Response(403))
    seen = []

    async def refresh(request, replay, client):
        replayed = await replay(request)
        seen.append(replayed.status_code)
        return replayed

    client = make_client(
        raise_for_status=True,
        is_unauthorized_response=status_classifier(),
        refresh=refresh,
    )

    with pytest.raises(httpx.HTTPStatusError) as excinfo:
        await client.get("me")

    assert seen == [403]
    assert excinfo.value.response.status_code == 403


@pytest.mark.asyncio
async def test_transport_errors_propagate_unchanged(make_client):
    def explode(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(transport=httpx.MockTransport(explode), retry=None)

    with pytest.raises(httpx.ConnectError, match="refused"):
        await client.get("users")


# --- extend() ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_extend_merges_defaults_and_shares_hooks(make_client, backend):
    backend.json("GET", "/v1/users", 200, [])
    base = make_client(logging=True, headers={"Accept": "application/json"})

    derived = base.extend(headers={"X-Tenant": "acme"}, timeout=5.0)
    await derived.get("users")

    sent = backend.requests[0]
    assert sent.headers["accept"] == "application/json"
    assert sent.headers["x-tenant"] == "acme"
    assert derived.config.timeout == 5.0
    assert base.config.timeout is None
    assert "X-Tenant" not in base.config.headers
    assert derived.hooks is base.hooks
    assert derived.correlator is base.correlator


@pytest.mark.asyncio
async def test_closing_derived_client_keeps_pool_open(make_client, backend):
    backend.json("GET", "/v1/users", 200, [])
    base = make_client()
    derived = base.extend(headers={"X-Tenant": "acme"})

    await derived.aclose()

    assert derived.is_closed
    assert not base.is_closed
    assert (await base.get("users")).status_code == 200


@pytest.mark.asyncio
async def test_extend_applies_cookies_and_auth_per_request(make_client, backend):
    backend.json("GET", "/v1/users", 200, [])
    base = make_client(cookies={"session": "root"})

    derived = base.extend(cookies={"tenant": "acme"}, auth=("svc", "pw"))
    await derived.get("users")
    await base.get("users")

    via_derived, via_base = backend.requests
    assert "tenant=acme" in via_derived.headers["cookie"]
    assert "session=root" in via_derived.headers["cookie"]
    assert via_derived.headers["authorization"] == "Basic " + base64.b64encode(b"svc:pw").decode()
    assert "tenant" not in via_base.headers["cookie"]
    assert "authorization" not in via_base.headers
    assert derived.config.request_options["cookies"] == {"tenant": "acme"}


def test_extend_rejects_changing_logging(make_client):
    base = make_client(logging=False)

    with pytest.raises(ConfigurationError, match="logging"):
        base.extend(logging=True)
    assert base.extend(logging=False).config.logging is False


@pytest.mark.parametrize("option", ["verify", "transport", "http2", "limits"])
def test_extend_rejects_pool_options(make_client, option):
    base = make_client()

    with pytest.raises(ConfigurationError, match=option):
        base.extend(**{option: object()})


@pytest.mark.asyncio
async def test_timeout_accepts_httpx_timeout(make_client, backend):
    backend.json("GET", "/v1/users", 200, [])
    timeout = httpx.Timeout(5.0, connect=2.0)
    client = make_client(timeout=timeout)

    await client.get("users")

    assert client.config.timeout is timeout
    assert backend.requests[0].extensions["timeout"] == timeout.as_dict()
    assert client.extend(timeout=1.5).config.timeout == 1.5


def test_non_positive_timeout_is_rejected(make_client):
    with pytest.raises(ConfigurationError):
        make_client(timeout=0)


# --- Credentials policy --------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("mode", "url", "kept"),
    [
        ("same-origin", "users", True),
        ("same-origin", "https://elsewhere.test/users", False),
        ("include", "https://elsewhere.test/users", True),
        ("omit", "users", False),
    ],
)
async def test_credentials_policy(make_client, backend, mode, url, kept):
    backend.json("GET", "/v1/users", 200, []).json("GET", "/users", 200, [])
    client = make_client(
        credentials=mode,
        headers={"Authorization": "Bearer t", "Cookie": "sid=1", "Accept": "*/*"},
    )

    await client.get(url)

    sent = backend.requests[0]
    assert ("authorization" in sent.headers) is kept
    assert ("cookie" in sent.headers) is kept
    assert sent.headers["accept"] == "*/*"


# --- Retries -------------------------------------------------------------------


@pytest.mark.asyncio
async def test_retryable_status_is_retried(make_client, backend):
    backend.add("GET", "/v1/flaky", httpx.Response(503), httpx.Response(200, json={"ok": True}))
    client = make_client(retry=NO_BACKOFF)

    response = await client.get("flaky")

    assert response.status_code == 200
    assert len(backend.calls("GET", "/v1/flaky")) == 2


@pytest.mark.asyncio
async def test_exhausted_retries_return_last_response(make_client, backend):
    backend.add("GET", "/v1/down", httpx.Response(503))
    client = make_client(retry=NO_BACKOFF)

    response = await client.get("down")

    assert response.status_code == 503
    assert len(backend.calls("GET", "/v1/down")) == 3


@pytest.mark.asyncio
async def test_non_idempotent_methods_are_not_retried(make_client, backend):
    backend.add("POST", "/v1/jobs", httpx.Response(503))
    client = make_client(retry=NO_BACKOFF)

    response = await client.post("jobs", json={})

    assert response.status_code == 503
    assert len(backend.calls("POST", "/v1/jobs")) == 1


@pytest.mark.asyncio
async def test_transport_errors_are_retried(make_client):
    attempts = []

    def flaky(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("reset", request=request)
        return httpx.Response(200)

    client = make_client(transport=httpx.MockTransport(flaky), retry=NO_BACKOFF)

    assert (await client.get("users")).status_code == 200
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_replay_does_not_retry(make_client, backend):
    def reply(request):
        if request.headers.get("authorization") == "Bearer fresh":
            return httpx.Response(503)
        return httpx.Response(401)

    backend.add("GET", "/v1/me", reply)

    async def refresh(request, replay, client):
        request.headers["Authorization"] = "Bearer fresh"
        return await replay(request)

    client = make_client(
        retry=NO_BACKOFF,
        is_unauthorized_response=status_classifier(),
        refresh=refresh,
    )

    response = await client.get("me")

    assert response.status_code == 503
    sent = backend.calls("GET", "/v1/me")
    assert [r.headers.get("authorization") for r in sent] == [None, "Bearer fresh"]


# --- Lifecycle -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_closed_client_rejects_requests(make_client):
    client = make_client()
    await client.aclose()

    with pytest.raises(ClientClosedError):
        await client.get("users")


@pytest.mark.asyncio
async def test_async_context_manager_closes_client(make_client, backend):
    backend.json("GET", "/v1/users", 200, [])

    async with make_client() as client:
        assert isinstance(client, HttpClient)
        await client.get("users")

    assert client.is_closed
