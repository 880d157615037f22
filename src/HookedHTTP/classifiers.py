"""Predicates deciding whether a response calls for re-authentication.

A classifier is any callable taking an ``httpx.Response`` and returning a bool
or an awaitable resolving to one. Nothing is installed by default: refresh
only runs when the caller supplies both a classifier and a refresh procedure.
"""

from __future__ import annotations

import inspect
from typing import Awaitable, Callable, Union

import httpx

__all__ = ["UnauthorizedClassifier", "classify", "status_classifier"]

UnauthorizedClassifier = Callable[[httpx.Response], Union[bool, Awaitable[bool]]]


def status_classifier(*status_codes: int) -> UnauthorizedClassifier:
    """Build a classifier matching on status codes (``401`` when none given).

    Example:
        >>> classifier = status_classifier(401, 419)
        >>> classifier(httpx.Response(419))
        True
    """

    codes = frozenset(status_codes or (401,))

    def is_unauthorized(response: httpx.Response) -> bool:
        return response.status_code in codes

    is_unauthorized.__qualname__ = f"status_classifier{tuple(sorted(codes))}"
    return is_unauthorized


async def classify(classifier: UnauthorizedClassifier, response: httpx.Response) -> bool:
    """Run ``classifier``, awaiting its result when it is asynchronous."""

    result = classifier(response)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)
