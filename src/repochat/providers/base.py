"""AI provider contract and shared HTTP plumbing."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
import logging
from typing import Any, Protocol, runtime_checkable

import httpx

from ..exceptions import ProviderError, TransportError
from ..models import ChatTurn

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class AIProvider(Protocol):
    """Capability set shared by every AI backend."""

    @property
    def name(self) -> str: ...

    @property
    def is_available(self) -> bool: ...

    async def initialize(self, config: Mapping[str, Any] | None = None) -> None:
        """Apply overrides and acquire resources; ConfigurationError if unusable."""
        ...

    async def converse(self, history: Sequence[ChatTurn]) -> str:
        """Send the ordered history and return the generated reply text."""
        ...

    async def dispose(self) -> None: ...


def last_user_content(history: Sequence[ChatTurn]) -> str | None:
    for turn in reversed(history):
        if turn.role == "user":
            return turn.content
    return None


def map_transport_exception(exc: Exception, label: str, url: str) -> Exception:
    """Translate httpx failures into domain errors."""
    if isinstance(exc, (ProviderError, TransportError)):
        return exc
    if isinstance(exc, httpx.TransportError):
        return TransportError(f"Unable to reach {label} at {url}: {exc}")
    return ProviderError(f"{label} request failed: {exc}")


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    label: str,
) -> dict[str, Any]:
    """POST ``payload`` and return the decoded JSON object.

    Non-2xx answers raise ProviderError, unreachable hosts TransportError.
    """
    try:
        response = await client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        raise map_transport_exception(exc, label, url) from exc

    if not response.is_success:
        LOGGER.warning(
            "provider.request.failed",
            extra={
                "event": "provider.request.failed",
                "provider": label,
                "status": response.status_code,
            },
        )
        raise ProviderError(
            f"{label} API error: {response.status_code} - {response.text[:500]}"
        )
    try:
        data = response.json()
    except ValueError as exc:
        raise ProviderError(f"{label} returned a non-JSON payload.") from exc
    if not isinstance(data, dict):
        raise ProviderError(f"{label} returned an unexpected payload.")
    return data
