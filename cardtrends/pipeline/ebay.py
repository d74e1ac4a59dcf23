"""
Card Trends — eBay Browse API Client

Pulls raw trading card listings from the eBay Browse API for the trend
aggregator. The client only fetches and parses; statistics live in
cardtrends.engine.

Authentication: OAuth2 Client Credentials flow. The bearer token is held
by an EbayTokenManager instance and renewed shortly before expiry.

Failures raise MarketplaceError. Callers that must degrade gracefully
(the aggregator) catch it at their boundary.
"""

from __future__ import annotations

import base64
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from cardtrends.config import settings
from cardtrends.schemas import RawListing

logger = structlog.get_logger(__name__)


class MarketplaceError(Exception):
    """Upstream marketplace unavailable, rejected the request, or sent garbage."""


class EbayTokenManager:
    """
    Obtains and caches an application bearer token.

    The token is reused until `refresh_margin_seconds` before its reported
    expiry, then renewed on the next call.
    """

    def __init__(
        self,
        app_id: str | None = None,
        cert_id: str | None = None,
        oauth_url: str | None = None,
        scope: str | None = None,
        refresh_margin_seconds: int | None = None,
    ) -> None:
        self._app_id = settings.EBAY_APP_ID if app_id is None else app_id
        self._cert_id = settings.EBAY_CERT_ID if cert_id is None else cert_id
        self._oauth_url = oauth_url or settings.EBAY_OAUTH_URL
        self._scope = scope or settings.EBAY_OAUTH_SCOPE
        self._refresh_margin = (
            settings.TOKEN_REFRESH_MARGIN_SECONDS
            if refresh_margin_seconds is None
            else refresh_margin_seconds
        )
        self._access_token: str | None = None
        self._expires_at: datetime = datetime.min.replace(tzinfo=timezone.utc)

    @property
    def is_configured(self) -> bool:
        return bool(self._app_id and self._cert_id)

    def reset(self) -> None:
        """Drop the cached token so the next call renews it."""
        self._access_token = None
        self._expires_at = datetime.min.replace(tzinfo=timezone.utc)

    def _is_valid(self, now: datetime) -> bool:
        return bool(self._access_token) and now < self._expires_at

    async def get_access_token(self, client: httpx.AsyncClient) -> str:
        """
        Return a valid bearer token, renewing it through `client` if needed.

        Raises:
            MarketplaceError: credentials missing or the token request failed.
        """
        if not self.is_configured:
            raise MarketplaceError("eBay credentials are not configured")

        now = datetime.now(timezone.utc)
        if self._is_valid(now):
            return str(self._access_token)

        credentials = f"{self._app_id}:{self._cert_id}"
        encoded = base64.b64encode(credentials.encode()).decode()

        try:
            response = await client.post(
                self._oauth_url,
                headers={
                    "Authorization": f"Basic {encoded}",
                    "Content-Type": "application/x-www-form-urlencoded",
                },
                data={
                    "grant_type": "client_credentials",
                    "scope": self._scope,
                },
            )
            response.raise_for_status()
            data = response.json()
            token = data["access_token"]
            expires_in = int(data.get("expires_in", 7200))
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.error("ebay_token_fetch_failed", error=str(e), source="ebay")
            raise MarketplaceError(f"eBay OAuth failed: {e}") from e

        self._access_token = token
        self._expires_at = now + timedelta(seconds=expires_in - self._refresh_margin)

        logger.info("ebay_token_refreshed", expires_in=expires_in, source="ebay")
        return token


class EbayBrowseClient:
    """
    eBay Browse API client returning RawListing records.

    Usage:
        async with EbayBrowseClient() as client:
            listings = await client.search("trading card", "183050")
    """

    def __init__(
        self,
        token_manager: EbayTokenManager | None = None,
        browse_url: str | None = None,
        timeout_seconds: float | None = None,
        limit: int | None = None,
        currency: str | None = None,
        marketplace_id: str | None = None,
        default_category_name: str | None = None,
    ) -> None:
        self._tokens = token_manager or EbayTokenManager()
        self._browse_url = browse_url or settings.EBAY_BROWSE_URL
        self._timeout = timeout_seconds or settings.MARKETPLACE_TIMEOUT_SECONDS
        self._limit = limit or settings.MARKET_SEARCH_LIMIT
        self._currency = currency or settings.MARKET_CURRENCY
        self._marketplace_id = marketplace_id or settings.EBAY_MARKETPLACE_ID
        self._default_category = (
            default_category_name or settings.MARKET_DEFAULT_CATEGORY_NAME
        )
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "EbayBrowseClient":
        self._client = httpx.AsyncClient(timeout=self._timeout)
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def search(self, query: str, category_id: str) -> list[RawListing]:
        """
        Search current listings for `query` within `category_id`.

        GET /buy/browse/v1/item_summary/search
            ?q={query}&category_ids={category_id}
            &filter=priceCurrency:{currency}&limit={limit}&sort=newlyListed

        Listings with an unusable price are still returned (price=None);
        filtering them is the aggregator's job.

        Raises:
            MarketplaceError: transport failure, non-2xx status, or a body
                that is not a Browse API search response.
        """
        if not self._client:
            raise MarketplaceError("EbayBrowseClient used outside its context manager")

        token = await self._tokens.get_access_token(self._client)

        try:
            response = await self._client.get(
                f"{self._browse_url}/item_summary/search",
                headers={
                    "Authorization": f"Bearer {token}",
                    "X-EBAY-C-MARKETPLACE-ID": self._marketplace_id,
                    "Accept": "application/json",
                },
                params={
                    "q": query,
                    "category_ids": category_id,
                    "filter": f"priceCurrency:{self._currency}",
                    "limit": str(self._limit),
                    "sort": "newlyListed",
                },
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("ebay_search_failed", query=query, error=str(e), source="ebay")
            raise MarketplaceError(f"eBay search failed: {e}") from e

        if not isinstance(data, dict):
            raise MarketplaceError("eBay search response is not a JSON object")

        items = data.get("itemSummaries") or []
        if not isinstance(items, list):
            raise MarketplaceError("eBay itemSummaries is not a list")

        listings: list[RawListing] = []
        skipped = 0
        for item in items:
            if not isinstance(item, dict):
                skipped += 1
                continue
            try:
                listings.append(self._parse_item(item))
            except (ValidationError, KeyError, TypeError) as e:
                skipped += 1
                logger.warning(
                    "ebay_item_parse_failed",
                    item_id=item.get("itemId"),
                    error=str(e),
                    error_type=type(e).__name__,
                    source="ebay",
                )

        logger.info(
            "ebay_search_complete",
            query=query,
            category_id=category_id,
            result_count=len(listings),
            skipped_count=skipped,
            source="ebay",
        )
        return listings

    def _parse_item(self, item: dict[str, Any]) -> RawListing:
        price = item.get("price") or {}
        image = item.get("image") or {}
        categories = item.get("categories") or []
        category = ""
        if isinstance(categories, list) and categories and isinstance(categories[0], dict):
            category = categories[0].get("categoryName") or ""

        return RawListing(
            title=item.get("title") or "",
            price=price.get("value") if isinstance(price, dict) else None,
            currency=(price.get("currency") if isinstance(price, dict) else None)
            or self._currency,
            image_url=image.get("imageUrl") if isinstance(image, dict) else None,
            item_web_url=item.get("itemWebUrl") or "",
            category=category or self._default_category,
        )
