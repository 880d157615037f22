# === NAVMAP v1 ===
# {
#   "module": "HookedHTTP.settings",
#   "purpose": "Typed configuration models and environment overrides for HookedHTTP clients",
#   "sections": [
#     {"id": "models", "name": "Configuration models", "anchor": "MOD", "kind": "models"},
#     {"id": "env", "name": "Environment overrides", "anchor": "ENV", "kind": "api"},
#     {"id": "builders", "name": "Configuration builders", "anchor": "BLD", "kind": "helpers"}
#   ]
# }
# === /NAVMAP ===

"""Configuration models for HookedHTTP.

Three pydantic models describe everything a client needs:

- :class:`RetrySettings` mirrors the transport-level retry knobs (attempt
  limit, retryable methods and status codes, backoff cap).
- :class:`LoggingSettings` controls the handler installed by
  :func:`HookedHTTP.logging_utils.setup_logging`.
- :class:`ClientConfiguration` is the immutable bundle shared by a client, its
  :meth:`~HookedHTTP.client.HttpClient.extend` derivatives, and the fresh
  client handed to refresh procedures.

Environment variables prefixed with ``HOOKEDHTTP_`` provide process-wide
defaults through :class:`EnvironmentOverrides`; explicit keyword options given
to :func:`HookedHTTP.client.create_http_client` always win.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, FrozenSet, Literal, Mapping, Optional, Tuple, Union

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

__all__ = [
    "CredentialsMode",
    "RetrySettings",
    "LoggingSettings",
    "ClientConfiguration",
    "EnvironmentOverrides",
    "get_settings",
    "reset_settings",
    "build_configuration",
    "coerce_retry",
    "split_options",
]

CredentialsMode = Literal["omit", "same-origin", "include"]

# --- Configuration models ------------------------------------------------------


def _normalize_headers(value: Any) -> Dict[str, str]:
    if value is None:
        return {}
    return {str(key): str(item) for key, item in dict(value).items()}


class RetrySettings(BaseModel):
    """Transport-level retry policy applied around a single dispatch.

    Defaults follow the conventions most fetch wrappers ship with: two extra
    attempts for idempotent methods on rate-limit, timeout and gateway
    statuses.
    """

    model_config = ConfigDict(frozen=True)

    limit: int = Field(default=2, ge=0, le=20, description="Extra attempts after the first")
    methods: FrozenSet[str] = Field(
        default=frozenset({"GET", "PUT", "HEAD", "DELETE", "OPTIONS", "TRACE"}),
        description="HTTP methods eligible for retry",
    )
    status_codes: FrozenSet[int] = Field(
        default=frozenset({408, 413, 429, 500, 502, 503, 504}),
        description="Response statuses that trigger a retry",
    )
    backoff_limit: float = Field(
        default=30.0,
        ge=0.0,
        le=600.0,
        description="Upper bound (seconds) for a single backoff sleep",
    )
    backoff_multiplier: float = Field(
        default=0.3,
        ge=0.0,
        le=60.0,
        description="Exponential backoff multiplier (seconds)",
    )

    @field_validator("methods", mode="before")
    @classmethod
    def normalize_methods(cls, v: Any) -> FrozenSet[str]:
        """Upper-case method names so lookups are case-insensitive."""
        return frozenset(str(method).upper() for method in v)

    @property
    def max_attempts(self) -> int:
        return self.limit + 1


class LoggingSettings(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(frozen=True)

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    emit_json_logs: bool = Field(default=False, description="Emit JSON-formatted log lines")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str) -> str:
        """Normalize and validate logging level."""
        upper = str(v).upper()
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {sorted(valid_levels)}, got '{v}'")
        return upper

    def level_int(self) -> int:
        """Convert level string to logging module integer."""
        return int(getattr(logging, self.level))


class ClientConfiguration(BaseModel):
    """Immutable defaults bound to a client at construction time.

    ``client_options`` carries every keyword the factory did not recognise;
    it is handed verbatim to :class:`httpx.AsyncClient`.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    base_url: str = Field(description="Prefix applied to relative request URLs")
    logging: bool = Field(default=False, description="Emit [REQ]/[RES] log groups")
    credentials: CredentialsMode = Field(
        default="same-origin",
        description="When Authorization/Cookie headers may leave the client",
    )
    headers: Dict[str, str] = Field(default_factory=dict, description="Default request headers")
    params: Dict[str, Any] = Field(default_factory=dict, description="Default query parameters")
    timeout: Optional[Union[float, httpx.Timeout]] = Field(
        default=None,
        description="Per-request timeout (seconds or httpx.Timeout); None keeps httpx default",
    )
    follow_redirects: bool = Field(default=False, description="Follow 3xx responses")
    raise_for_status: bool = Field(
        default=False, description="Raise httpx.HTTPStatusError for 4xx/5xx after hooks ran"
    )
    retry: Optional[RetrySettings] = Field(
        default_factory=RetrySettings, description="Retry policy; None disables retries"
    )
    client_options: Dict[str, Any] = Field(
        default_factory=dict, description="Extra keyword arguments for httpx.AsyncClient"
    )
    request_options: Dict[str, Any] = Field(
        default_factory=dict,
        description="cookies/auth layered by extend(), applied per request on the shared pool",
    )

    @field_validator("base_url", mode="before")
    @classmethod
    def normalize_base_url(cls, v: Any) -> str:
        """Require an absolute http(s) URL and force a trailing slash."""
        url = httpx.URL(str(v))
        if url.scheme not in {"http", "https"} or not url.host:
            raise ValueError(f"base_url must be an absolute http(s) URL, got '{v}'")
        text = str(url.copy_with(query=None, fragment=None))
        return text if text.endswith("/") else text + "/"

    @field_validator("timeout")
    @classmethod
    def positive_timeout(cls, v: Any) -> Any:
        if isinstance(v, float) and v <= 0.0:
            raise ValueError(f"timeout must be positive, got {v}")
        return v

    @field_validator("headers", mode="before")
    @classmethod
    def normalize_headers(cls, v: Any) -> Dict[str, str]:
        return _normalize_headers(v)

    @property
    def origin(self) -> tuple:
        url = httpx.URL(self.base_url)
        return (url.scheme, url.host, url.port)

    def merged(self, **options: Any) -> "ClientConfiguration":
        """Return a copy with ``options`` layered on top (used by ``extend``).

        Derived clients share the connection pool and hook chain of their
        root, so only options that apply per request can change here.
        ``cookies`` and ``auth`` are kept in ``request_options``; anything
        else that would configure ``httpx.AsyncClient`` (``verify``,
        ``transport``, ``limits``, ...) or a different ``logging`` flag
        raises :class:`ConfigurationError`.
        """

        logging_flag = options.pop("logging", self.logging)
        if logging_flag != self.logging:
            raise ConfigurationError(
                "logging is fixed by the hook chain a derived client shares; "
                "create a new client to change it"
            )

        recognised, forwarded = split_options(options)
        request_options = dict(self.request_options)
        for key in _REQUEST_SCOPED_KEYS:
            if key not in forwarded:
                continue
            value = forwarded.pop(key)
            if key == "cookies" and value is not None:
                cookies = dict(request_options.get("cookies") or {})
                cookies.update(dict(value))
                value = cookies
            request_options[key] = value
        if forwarded:
            raise ConfigurationError(
                f"{sorted(forwarded)} configure the shared connection pool and cannot "
                "change on a derived client"
            )

        headers = dict(self.headers)
        headers.update(_normalize_headers(recognised.pop("headers", None)))
        params = dict(self.params)
        params.update(dict(recognised.pop("params", None) or {}))

        data = self.model_dump()
        data.update(
            headers=headers,
            params=params,
            timeout=self.timeout,
            retry=self.retry,
            client_options=self.client_options,
            request_options=request_options,
        )
        data.update(recognised)
        return _validate(data)


# --- Environment overrides ------------------------------------------------------


class EnvironmentOverrides(BaseSettings):
    """Pydantic settings model exposing environment-derived defaults."""

    logging: Optional[bool] = Field(default=None, alias="HOOKEDHTTP_LOGGING")
    log_level: Optional[str] = Field(default=None, alias="HOOKEDHTTP_LOG_LEVEL")
    json_logs: Optional[bool] = Field(default=None, alias="HOOKEDHTTP_JSON_LOGS")
    timeout: Optional[float] = Field(default=None, alias="HOOKEDHTTP_TIMEOUT")

    model_config = SettingsConfigDict(
        env_prefix="HOOKEDHTTP_", case_sensitive=False, extra="ignore"
    )

    def logging_settings(self) -> LoggingSettings:
        data: Dict[str, Any] = {}
        if self.log_level is not None:
            data["level"] = self.log_level
        if self.json_logs is not None:
            data["emit_json_logs"] = self.json_logs
        try:
            return LoggingSettings(**data)
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid HOOKEDHTTP_* logging environment: {exc}") from exc


_SETTINGS_LOCK = threading.Lock()
_SETTINGS_CACHE: Optional[EnvironmentOverrides] = None


def get_settings() -> EnvironmentOverrides:
    """Return the cached environment overrides, reading them on first use."""

    global _SETTINGS_CACHE  # noqa: PLW0603

    with _SETTINGS_LOCK:
        if _SETTINGS_CACHE is None:
            try:
                _SETTINGS_CACHE = EnvironmentOverrides()
            except PydanticValidationError as exc:
                raise ConfigurationError(f"Invalid HOOKEDHTTP_* environment: {exc}") from exc
        return _SETTINGS_CACHE


def reset_settings() -> None:
    """Invalidate the cached environment overrides (test helper)."""

    global _SETTINGS_CACHE  # noqa: PLW0603

    with _SETTINGS_LOCK:
        _SETTINGS_CACHE = None


# --- Configuration builders -----------------------------------------------------

_RECOGNISED_KEYS = frozenset(
    {
        "headers",
        "params",
        "timeout",
        "follow_redirects",
        "raise_for_status",
        "credentials",
        "retry",
    }
)

# Forwarded options a derived client may still vary: they are applied per
# request instead of on the shared httpx.AsyncClient.
_REQUEST_SCOPED_KEYS = ("cookies", "auth")


def coerce_retry(value: Union[RetrySettings, Mapping[str, Any], int, None]) -> Optional[RetrySettings]:
    """Accept the shorthand forms of the ``retry`` option.

    ``None`` disables retries, an ``int`` is an attempt limit, a mapping is
    validated into :class:`RetrySettings`.
    """

    if value is None or isinstance(value, RetrySettings):
        return value
    if isinstance(value, bool):
        raise ConfigurationError("retry must be None, an int, a mapping or RetrySettings, not a bool")
    try:
        if isinstance(value, int):
            return RetrySettings(limit=value)
        if isinstance(value, Mapping):
            return RetrySettings(**value)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid retry option: {exc}") from exc
    raise ConfigurationError(f"Unsupported retry option: {value!r}")


def split_options(options: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Split keywords into ``(recognised, forwarded)``; ``retry`` is coerced."""

    recognised: Dict[str, Any] = {}
    forwarded: Dict[str, Any] = {}
    for key, value in options.items():
        if key == "retry":
            recognised["retry"] = coerce_retry(value)
        elif key in _RECOGNISED_KEYS:
            recognised[key] = value
        else:
            forwarded[key] = value
    return recognised, forwarded

def _validate(data: Mapping[str, Any]) -> ClientConfiguration:
    try:
        return ClientConfiguration(**data)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid client configuration: {exc}") from exc


def build_configuration(
    base_url: str,
    *,
    logging: Optional[bool] = None,
    env: Optional[EnvironmentOverrides] = None,
    **options: Any,
) -> ClientConfiguration:
    """Split factory keywords into recognised defaults and httpx pass-through.

    Args:
        base_url: Prefix for relative request URLs.
        logging: Explicit logging flag; ``None`` falls back to
            ``HOOKEDHTTP_LOGGING`` and finally ``False``.
        env: Environment overrides; defaults to :func:`get_settings`.
        **options: Transport options. Keys outside the recognised set are
            forwarded to :class:`httpx.AsyncClient` untouched.

    Returns:
        Validated, frozen :class:`ClientConfiguration`.

    Raises:
        ConfigurationError: If any option fails validation.
    """

    env = env if env is not None else get_settings()
    data: Dict[str, Any] = {"base_url": base_url}

    if logging is None:
        logging = bool(env.logging) if env.logging is not None else False
    data["logging"] = logging

    if env.timeout is not None:
        data["timeout"] = env.timeout

    recognised, client_options = split_options(options)
    data.update(recognised)
    data["client_options"] = client_options
    return _validate(data)
