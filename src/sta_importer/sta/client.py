"""HTTP client for a SensorThings API service."""

from __future__ import annotations

import re
from contextlib import AbstractContextManager
from typing import Any, Iterator, Mapping

import httpx
from tenacity import Retrying, stop_after_attempt, wait_exponential

from sta_importer.core.config import Settings, get_settings
from sta_importer.core.exceptions import RemoteCallError
from sta_importer.core.logging import get_logger
from sta_importer.templating import escape_for_string_constant

LOGGER = get_logger(__name__)

NEXT_LINK_KEY = "@iot.nextLink"
_ID_IN_URL = re.compile(r"\(([^()]*)\)\s*$")


def format_entity_id(entity_id: Any) -> str:
    """Render an id for use in an entity path: bare when numeric, quoted otherwise."""
    if isinstance(entity_id, int) and not isinstance(entity_id, bool):
        return str(entity_id)
    return f"'{escape_for_string_constant(str(entity_id))}'"


def parse_entity_id(location: str) -> Any:
    """Extract the id from a ``.../Things(42)`` or ``.../Things('a')`` URL."""
    match = _ID_IN_URL.search(location)
    if match is None:
        return None
    raw = match.group(1).strip()
    if len(raw) >= 2 and raw[0] == raw[-1] == "'":
        return raw[1:-1].replace("''", "'")
    if raw.lstrip("-").isdigit():
        return int(raw)
    return raw


class SensorThingsClient(AbstractContextManager["SensorThingsClient"]):
    """Query, create and update entities over HTTP."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._max_attempts = max(1, self._settings.max_retries)
        self._backoff = self._settings.retry_backoff
        self._client = httpx.Client(transport=transport, **self._settings.http_client_config())

    # Context manager API -----------------------------------------------------
    def __enter__(self) -> "SensorThingsClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:  # type: ignore[override]
        self.close()

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    # Reads -------------------------------------------------------------------
    def query(
        self,
        entity_set: str,
        *,
        filter: str | None = None,
        select: str | None = None,
        expand: str | None = None,
        top: int | None = None,
        limit: int | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Yield raw entities, following ``@iot.nextLink`` until exhausted or ``limit`` is hit."""
        params: dict[str, Any] = {}
        if filter:
            params["$filter"] = filter
        if select:
            params["$select"] = select
        if expand:
            params["$expand"] = expand
        if top:
            params["$top"] = top
        LOGGER.debug("sta.query", entity_set=entity_set, params=params)

        url: str | None = entity_set
        page_params: Mapping[str, Any] | None = params
        yielded = 0
        while url:
            payload = self._get_with_retry(url, page_params)
            for item in payload.get("value") or []:
                yield item
                yielded += 1
                if limit is not None and yielded >= limit:
                    return
            url = payload.get(NEXT_LINK_KEY)
            page_params = None

    def _get_with_retry(self, url: str, params: Mapping[str, Any] | None) -> dict[str, Any]:
        retryer = Retrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=max(self._backoff, 0.1), min=0.5, max=8),
            reraise=True,
        )
        try:
            for attempt in retryer:
                with attempt:
                    response = self._client.get(url, params=params)
                    response.raise_for_status()
                    return response.json()
        except httpx.HTTPError as exc:
            raise RemoteCallError(f"Query {url} failed: {exc}") from exc
        except ValueError as exc:
            raise RemoteCallError(f"Query {url} returned invalid json") from exc
        raise RemoteCallError(f"Query {url} failed")

    # Writes ------------------------------------------------------------------
    def create(self, entity_set: str, payload: Mapping[str, Any]) -> Any:
        """POST a new entity and return the id assigned by the service."""
        try:
            response = self._client.post(entity_set, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RemoteCallError(f"Create in {entity_set} failed: {exc}") from exc
        location = response.headers.get("Location")
        entity_id = parse_entity_id(location) if location else None
        if entity_id is None and response.content:
            try:
                entity_id = response.json().get("@iot.id")
            except ValueError:
                entity_id = None
        if entity_id is None:
            raise RemoteCallError(f"Create in {entity_set} returned no entity id")
        LOGGER.info("sta.created", entity_set=entity_set, id=entity_id)
        return entity_id

    def update(self, entity_set: str, entity_id: Any, payload: Mapping[str, Any]) -> None:
        """PATCH an existing entity."""
        path = f"{entity_set}({format_entity_id(entity_id)})"
        try:
            response = self._client.patch(path, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RemoteCallError(f"Update of {path} failed: {exc}") from exc
        LOGGER.info("sta.updated", entity_set=entity_set, id=entity_id)

    def create_observations(self, payload: list[Mapping[str, Any]]) -> list[str]:
        """POST a ``CreateObservations`` data array request; return the per-row results."""
        try:
            response = self._client.post("CreateObservations", json=payload)
            response.raise_for_status()
            results = response.json()
        except httpx.HTTPError as exc:
            raise RemoteCallError(f"CreateObservations failed: {exc}") from exc
        except ValueError as exc:
            raise RemoteCallError("CreateObservations returned invalid json") from exc
        if not isinstance(results, list):
            raise RemoteCallError("CreateObservations returned an unexpected payload")
        return [str(item) for item in results]
