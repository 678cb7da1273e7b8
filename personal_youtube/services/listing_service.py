from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

from personal_youtube.models.listing_contracts import (
    BreadcrumbEntry,
    ListingRecord,
    PageResult,
)
from personal_youtube.repositories.session_token_repository import (
    SessionTokenRepository,
    StreamKind,
)
from personal_youtube.services.oauth_session import OAuthSessionManager
from personal_youtube.services.youtube_catalog_client import (
    DEFAULT_SEARCH_ORDER,
    MAX_RESULTS_CEILING,
    CatalogItem,
    CatalogPage,
    YouTubeAuthExpiredError,
    YouTubeCatalogClient,
    build_catalog_client,
)

VIDEO_FILE_SUFFIX = ".mp4"
WATCH_URL_PREFIX = "https://www.youtube.com/watch?v="
MANAGE_CHANNEL_URL_PREFIX = "https://www.youtube.com/channel/"
UPLOADS_BREADCRUMB = BreadcrumbEntry(name="Uploads", path="/")
SEARCH_BREADCRUMB = BreadcrumbEntry(name="Search", path="/")

LOGGER = logging.getLogger("personal_youtube.listing")

CatalogClientFactory = Callable[[str], YouTubeCatalogClient]


@dataclass(frozen=True)
class ListingOptions:
    page_size: int = 29
    supports_total_count: bool = True
    supports_sort_and_cursor_reuse: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "page_size", max(1, min(MAX_RESULTS_CEILING, self.page_size)))


class ListingService:
    """Presents the user's uploads and search results as numbered pages.

    The provider only offers forward cursors, so page N > 1 is served from the cursor stored
    after the previous call on the same stream. A page shorter than `page_size` is always
    reported as the last one.
    """

    def __init__(
        self,
        *,
        repository_id: str,
        oauth: OAuthSessionManager,
        token_repository: SessionTokenRepository,
        client_factory: CatalogClientFactory = build_catalog_client,
        options: ListingOptions | None = None,
    ) -> None:
        self._repository_id = repository_id
        self._oauth = oauth
        self._token_repository = token_repository
        self._client_factory = client_factory
        self._options = options or ListingOptions()
        self._authenticated = oauth.is_authenticated()

    @property
    def options(self) -> ListingOptions:
        return self._options

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    def get_listing(self, path: str = "", page: object = "") -> PageResult | None:
        _ = path
        page_number = coerce_page_number(page)
        page_token = self._resume_token("uploads", page_number)

        catalog_page = self._fetch(
            "uploads",
            lambda client: client.list_uploads(page_token, self._options.page_size),
        )
        if catalog_page is None:
            return None

        self._store_page_token("uploads", catalog_page)
        return self._build_result(
            page_number,
            catalog_page,
            breadcrumb=UPLOADS_BREADCRUMB,
            is_search_result=False,
        )

    def search(
        self,
        search_text: str,
        page: object = 0,
        sort: str | None = None,
    ) -> PageResult | None:
        page_number = coerce_page_number(page)
        keyword = search_text or ""
        sort_order = (sort or "").strip()
        reuse = self._options.supports_sort_and_cursor_reuse

        if reuse:
            # Another page of the last search: the host omits the keyword and sort.
            if page_number > 1:
                cached = self._token_repository.get_cached_search(
                    self._oauth.session_id, self._repository_id
                )
                if cached is not None:
                    if not keyword:
                        keyword = cached.keyword
                    if not sort_order:
                        sort_order = cached.sort
            if not sort_order:
                sort_order = DEFAULT_SEARCH_ORDER
            self._token_repository.store_cached_search(
                self._oauth.session_id,
                self._repository_id,
                keyword=keyword,
                sort=sort_order,
            )
            page_token = self._resume_token("search", page_number)
        else:
            sort_order = DEFAULT_SEARCH_ORDER
            page_token = ""

        catalog_page = self._fetch(
            "search",
            lambda client: client.search_mine(
                keyword, page_token, self._options.page_size, sort_order
            ),
        )
        if catalog_page is None:
            return None

        if reuse:
            self._store_page_token("search", catalog_page)
        return self._build_result(
            page_number,
            catalog_page,
            breadcrumb=SEARCH_BREADCRUMB,
            is_search_result=True,
        )

    def logout(self) -> None:
        self._oauth.logout()
        self._authenticated = False

    def _resume_token(self, stream: StreamKind, page_number: int) -> str:
        start = (page_number - 1) * self._options.page_size + 1
        if start <= 1:
            return ""
        stored = self._token_repository.get_page_token(
            self._oauth.session_id, self._repository_id, stream
        )
        return stored or ""

    def _store_page_token(self, stream: StreamKind, catalog_page: CatalogPage) -> None:
        self._token_repository.store_page_token(
            self._oauth.session_id,
            self._repository_id,
            stream,
            catalog_page.next_page_token or "",
        )

    def _fetch(
        self,
        stream: StreamKind,
        call: Callable[[YouTubeCatalogClient], CatalogPage],
    ) -> CatalogPage | None:
        access_token = self._oauth.access_token if self._authenticated else None
        if not access_token:
            LOGGER.info(
                "listing not_authenticated repository_id=%s stream=%s",
                self._repository_id,
                stream,
            )
            self.logout()
            return None

        try:
            return call(self._client_factory(access_token))
        except YouTubeAuthExpiredError:
            LOGGER.info(
                "listing auth_expired repository_id=%s stream=%s",
                self._repository_id,
                stream,
            )
            self.logout()
            return None

    def _build_result(
        self,
        page_number: int,
        catalog_page: CatalogPage,
        *,
        breadcrumb: BreadcrumbEntry,
        is_search_result: bool,
    ) -> PageResult:
        records = [to_listing_record(item) for item in catalog_page.items]
        has_more = len(records) == self._options.page_size
        total = catalog_page.total_results if self._options.supports_total_count else None
        return PageResult(
            page=page_number,
            entries=records,
            total=total,
            has_more=has_more,
            pages=-1 if has_more else page_number,
            manage=f"{MANAGE_CHANNEL_URL_PREFIX}{catalog_page.channel_id}",
            path=[breadcrumb],
            dynload=True,
            is_search_result=is_search_result,
        )


def coerce_page_number(raw_page: object) -> int:
    page: int
    if isinstance(raw_page, bool):
        page = 1
    elif isinstance(raw_page, int):
        page = raw_page
    elif isinstance(raw_page, float):
        page = int(raw_page) if math.isfinite(raw_page) else 1
    elif isinstance(raw_page, str):
        try:
            page = int(raw_page.strip())
        except ValueError:
            page = 1
    else:
        page = 1
    return max(1, page)


def to_listing_record(item: CatalogItem) -> ListingRecord:
    return ListingRecord(
        shorttitle=item.title,
        thumbnail_title=item.description,
        title=f"{item.title}{VIDEO_FILE_SUFFIX}",
        thumbnail=item.thumbnail.url,
        thumbnail_width=item.thumbnail.width,
        thumbnail_height=item.thumbnail.height,
        size="",
        date="",
        source=f"{WATCH_URL_PREFIX}{item.video_id}#{item.title}",
    )
