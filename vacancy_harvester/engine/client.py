"""HTTP client for the remote vacancy search API."""

from __future__ import annotations

from typing import Any, Mapping

import httpx
import structlog

from ..config.models import ApiConfig
from .errors import HttpStatusError, ParseError, TransportError
from .models import (
    DetailFetch,
    DetailPayload,
    InvalidPayload,
    ListingKey,
    NotFound,
    RateLimited,
    SearchPage,
    Transient,
)

RATE_LIMIT_STATUSES = frozenset({403, 429})


class ListingClient:
    """Issue search and detail requests; classify their outcomes.

    Neither operation retries. ``search_page`` raises on failure so the
    pagination driver decides what to do with a bad page, while
    ``fetch_detail`` returns a result variant the retry engine matches on.
    """

    def __init__(
        self,
        config: ApiConfig,
        client: httpx.Client | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.config = config
        self.logger = logger or structlog.get_logger("vacancy_harvester.client")
        self._client = client or httpx.Client(timeout=config.timeout)
        self._headers = {
            "Authorization": f"Bearer {config.bearer_token}",
            "User-Agent": config.user_agent,
        }

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    def search_page(
        self,
        date_from: str,
        date_to: str,
        page_index: int,
        page_size: int | None = None,
        filters: Mapping[str, Any] | None = None,
    ) -> SearchPage:
        params: dict[str, Any] = self.config.search_filters()
        if filters:
            params.update(filters)
        params.update(
            {
                "date_from": date_from,
                "date_to": date_to,
                "per_page": page_size or self.config.per_page,
                "page": page_index,
            }
        )
        url = f"{self.config.base_url}/vacancies"
        try:
            response = self._client.get(url, params=params, headers=self._headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"Search page {page_index} request failed: {exc}") from exc
        if response.status_code != 200:
            raise HttpStatusError(response.status_code, url)
        body = self._decode(response)
        if body is None:
            raise ParseError(f"Search page {page_index} returned a non-object JSON body")
        items = body.get("items")
        pages = body.get("pages")
        if not isinstance(items, list) or not isinstance(pages, int) or isinstance(pages, bool):
            raise ParseError(f"Search page {page_index} is missing 'items' or 'pages'")
        keys: list[ListingKey] = []
        for item in items:
            if isinstance(item, dict) and item.get("id") not in (None, ""):
                keys.append(str(item["id"]))
        return SearchPage(
            keys=keys,
            page_index=page_index,
            total_pages=pages,
            found=body.get("found") if isinstance(body.get("found"), int) else len(keys),
        )

    def fetch_detail(self, key: ListingKey) -> DetailFetch:
        url = f"{self.config.base_url}/vacancies/{key}"
        try:
            response = self._client.get(url, headers=self._headers)
        except httpx.HTTPError as exc:
            return Transient(reason=f"transport: {exc}")
        status = response.status_code
        if status == 200:
            try:
                body = self._decode(response)
            except ParseError as exc:
                return InvalidPayload(reason=str(exc))
            if body is None:
                return InvalidPayload(reason="detail body is not a JSON object")
            return DetailPayload(payload=body)
        if status == 404:
            return NotFound()
        if status in RATE_LIMIT_STATUSES:
            return RateLimited(status_code=status)
        return Transient(reason=f"http {status}")

    # ------------------------------------------------------------------
    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any] | None:
        try:
            body = response.json()
        except ValueError as exc:
            raise ParseError(f"Malformed JSON from {response.request.url}: {exc}") from exc
        return body if isinstance(body, dict) else None


__all__ = ["ListingClient", "RATE_LIMIT_STATUSES"]
