"""
Libby Catalog Client

Authenticated access to the Libby / OverDrive services:
- Card sync (library key resolution)
- Library media search and format lookup
- Tag listing and tag mutation
"""

import asyncio
import base64
import random
import time
from typing import Any, Iterable, Optional, Protocol

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from shelftag.catalog.schemas import CardSync, MediaDetails, SearchResult, TagList, TagQuery
from shelftag.config import LibbyCredentials
from shelftag.errors import (
    BookNotFoundError,
    CardNotFoundError,
    CatalogRequestError,
    ConfigError,
    TagMutationError,
    TagNotFoundError,
)
from shelftag.matching.matcher import FuzzyMatcher
from shelftag.models import CatalogMatch, SearchOptions, TagInfo, TaggedItem


def encode_tag_name(name: str) -> str:
    """
    Encode a tag name for tag URLs.

    Each UTF-16 code unit becomes `%uXXXX` and the result is base64 encoded.
    """
    raw = name.encode("utf-16-be")
    units = (int.from_bytes(raw[i:i + 2], "big") for i in range(0, len(raw), 2))
    escaped = "".join(f"%u{unit:02X}" for unit in units)
    return base64.b64encode(escaped.encode("ascii")).decode("ascii")


class CatalogClient(Protocol):
    """Operations the reconciler and the browse pipeline consume."""

    async def search_for_book(
        self, options: SearchOptions, title: str, authors: Optional[Iterable[str]] = None
    ) -> CatalogMatch: ...

    async def fetch_formats(self, catalog_id: str) -> list[str]: ...

    async def tag(self, tag: TagInfo, catalog_id: str) -> None: ...

    async def untag(self, tag: TagInfo, catalog_id: str) -> None: ...


class LibbyClient:
    """
    Client for the Libby catalog services.

    The credentials are fixed at construction. Use `connect()` to resolve
    the library key of the card before searching.

    Usage:
        async with await LibbyClient.connect(credentials) as client:
            match = await client.search_for_book(options, "Dune", {"Frank Herbert"})
    """

    SYNC_URL = "https://sentry-read.svc.overdrive.com/chip/sync"
    THUNDER_URL = "https://thunder.api.overdrive.com/v2"
    VANDAL_URL = "https://vandal.svc.overdrive.com"

    USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:109.0) Gecko/20100101 Firefox/114.0"
    CLIENT_ID = "dewey"
    WEBSITE_ID = "83"

    RETRY_STATUS = {429, 500, 502, 503, 504}

    def __init__(
        self,
        credentials: LibbyCredentials,
        timeout: float = 30.0,
        max_retries: int = 3,
        base_backoff: float = 1.0,
        matcher: Optional[FuzzyMatcher] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize client.

        Args:
            credentials: Card id, bearer token and (once connected) library key
            timeout: Request timeout in seconds
            max_retries: Attempts for idempotent requests
            base_backoff: Base delay for exponential backoff
            matcher: Candidate selection policy
            transport: Optional httpx transport (tests)
        """
        self._credentials = credentials
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.base_backoff = base_backoff
        self.matcher = matcher or FuzzyMatcher()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    async def connect(cls, credentials: LibbyCredentials, **kwargs: Any) -> "LibbyClient":
        """Create a client whose credentials carry the card's library key."""
        client = cls(credentials, **kwargs)
        if credentials.library_key:
            return client

        try:
            library_key = await client.get_library_key()
        except BaseException:
            await client.close()
            raise
        client._credentials = credentials.with_library_key(library_key)
        logger.info(f"Connected card {credentials.card_id} to library '{library_key}'")
        return client

    @property
    def credentials(self) -> LibbyCredentials:
        return self._credentials

    @property
    def library_key(self) -> str:
        if not self._credentials.library_key:
            raise ConfigError("Library key not resolved", detail="use LibbyClient.connect()")
        return self._credentials.library_key

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                follow_redirects=True,
                headers={
                    "User-Agent": self.USER_AGENT,
                    "Origin": "https://libbyapp.com",
                    "Referer": "https://libbyapp.com",
                    "Sec-Fetch-Dest": "empty",
                    "Sec-Fetch-Mode": "cors",
                    "Sec-Fetch-Site": "cross-site",
                },
            )
        return self._client

    @property
    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._credentials.bearer_token}"}

    # -------------------------------------------------------------------------
    # Requests
    # -------------------------------------------------------------------------

    async def _get(self, url: str, schema: type[BaseModel], params: Optional[dict] = None) -> Any:
        """
        GET with retry on transient failures, decoded into `schema`.

        Raises:
            CatalogRequestError: On non-retryable status, exhausted retries
                or an undecodable payload
        """
        client = await self._get_client()
        last_error: Optional[CatalogRequestError] = None

        for attempt in range(self.max_retries):
            try:
                response = await client.get(url, params=params, headers=self._auth_headers)
            except httpx.TransportError as e:
                logger.warning(f"Request error on attempt {attempt + 1}/{self.max_retries} for {url}: {e!r}")
                last_error = CatalogRequestError(f"Request to {url} failed", detail=repr(e))
            else:
                if response.status_code == 200:
                    try:
                        return schema.model_validate(response.json())
                    except (ValueError, ValidationError) as e:
                        raise CatalogRequestError(f"Unexpected response from {url}", detail=str(e)) from e

                last_error = CatalogRequestError(
                    f"HTTP {response.status_code} from {url}",
                    detail=response.text[:200],
                    status_code=response.status_code,
                )
                if response.status_code not in self.RETRY_STATUS:
                    raise last_error
                logger.warning(f"Status {response.status_code} on attempt {attempt + 1}/{self.max_retries} for {url}")

            if attempt < self.max_retries - 1:
                await self._backoff(attempt)

        assert last_error is not None
        raise last_error

    async def _backoff(self, attempt: int) -> None:
        """Sleep with exponential backoff and jitter."""
        delay = self.base_backoff * (2 ** attempt)
        total_delay = delay + random.uniform(0, delay)
        logger.debug(f"Backing off for {total_delay:.2f} seconds")
        await asyncio.sleep(total_delay)

    def _tagging_url(self, tag: TagInfo, catalog_id: str) -> str:
        return f"{self.VANDAL_URL}/tag/{tag.uuid}/{encode_tag_name(tag.name)}/tagging/{catalog_id}"

    async def _mutate(self, action: str, method: str, tag: TagInfo, catalog_id: str, body: Optional[dict] = None) -> None:
        """Single-attempt tag mutation. Any failure raises TagMutationError."""
        client = await self._get_client()
        url = self._tagging_url(tag, catalog_id)
        try:
            response = await client.request(
                method,
                url,
                params={"enc": "1"},
                json=body,
                headers=self._auth_headers,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TagMutationError(action, catalog_id, detail=f"HTTP {e.response.status_code}: {e.response.text[:200]}") from e
        except httpx.HTTPError as e:
            raise TagMutationError(action, catalog_id, detail=repr(e)) from e
        logger.debug(f"{action} {catalog_id}: {response.status_code}")

    # -------------------------------------------------------------------------
    # Card
    # -------------------------------------------------------------------------

    async def get_library_key(self) -> str:
        """Find the advantage key of the library that issued the card."""
        sync = await self._get(self.SYNC_URL, CardSync)
        for card in sync.cards:
            if card.card_id == self._credentials.card_id:
                return card.advantage_key
        raise CardNotFoundError(self._credentials.card_id)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def _search_params(self, options: SearchOptions, title: str) -> dict[str, str]:
        params = {
            "query": title,
            "mediaTypes": str(options.media_type),
            "perPage": str(options.per_page),
            "page": "1",
            "x-client-id": self.CLIENT_ID,
        }
        if options.deep_search:
            params["show"] = "all"
        return params

    async def search(self, options: SearchOptions, title: str) -> list[CatalogMatch]:
        """
        Search the library for a title.

        Returns:
            Candidates in catalog order (possibly empty)
        """
        url = f"{self.THUNDER_URL}/libraries/{self.library_key}/media"
        result = await self._get(url, SearchResult, params=self._search_params(options, title))
        logger.debug(f"Search '{title}': {len(result.items)} of {result.total_items} items")
        return [item.to_match() for item in result.items]

    async def search_for_book(
        self,
        options: SearchOptions,
        title: str,
        authors: Optional[Iterable[str]] = None,
    ) -> CatalogMatch:
        """
        Find the catalog item for a book.

        Raises:
            BookNotFoundError: No candidate matched
            CatalogRequestError: The search itself failed
        """
        match = await self.matcher.find(self.search, options, title, authors)
        if match is None:
            raise BookNotFoundError(title)
        return match

    async def fetch_formats(self, catalog_id: str) -> list[str]:
        """Get the format ids available for a catalog item."""
        url = f"{self.THUNDER_URL}/libraries/{self.library_key}/media/{catalog_id}"
        details = await self._get(url, MediaDetails, params={"x-client-id": self.CLIENT_ID})
        return details.format_ids()

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    async def get_tag_by_name(self, name: str) -> TagInfo:
        """Look up an existing tag of the account."""
        tag_list = await self._get(f"{self.VANDAL_URL}/tags", TagList)
        for tag in tag_list.tags:
            if tag.name == name:
                return tag.to_info()
        raise TagNotFoundError(name)

    async def get_tagged_items(self, tag: TagInfo) -> list[TaggedItem]:
        """List the catalog items carrying a tag."""
        url = f"{self.VANDAL_URL}/tag/{tag.uuid}/{encode_tag_name(tag.name)}"
        query = await self._get(url, TagQuery, params={"enc": "1", "sort": "newest"})
        return [tagging.to_item() for tagging in query.tag.taggings]

    async def tag(self, tag: TagInfo, catalog_id: str) -> None:
        """Apply a tag to a catalog item."""
        body = {
            "tagging": {
                "cardId": self._credentials.card_id,
                "createTime": int(time.time()),
                "titleId": catalog_id,
                "websiteId": self.WEBSITE_ID,
            }
        }
        await self._mutate("tag", "POST", tag, catalog_id, body=body)

    async def untag(self, tag: TagInfo, catalog_id: str) -> None:
        """Remove a tag from a catalog item."""
        await self._mutate("untag", "DELETE", tag, catalog_id)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "LibbyClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __str__(self) -> str:
        return f"LibbyClient(card={self._credentials.card_id}, library={self._credentials.library_key})"
