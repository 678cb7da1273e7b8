from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from importlib import import_module
from typing import Any, cast

YOUTUBE_READONLY_SCOPE = "https://www.googleapis.com/auth/youtube.readonly"
MAX_RESULTS_CEILING = 50
DEFAULT_SEARCH_ORDER = "relevance"
GENERIC_API_ERROR_MESSAGE = "The YouTube API request failed."
_AUTH_ERROR_REASONS: frozenset[str] = frozenset(
    {
        "autherror",
        "invalidcredentials",
        "unauthorized",
    }
)

LOGGER = logging.getLogger("personal_youtube.catalog")


class YouTubeServiceError(Exception):
    pass


class YouTubeApiError(YouTubeServiceError):
    """Provider-reported failure, carrying only the provider's first error message."""


class YouTubeAuthExpiredError(YouTubeServiceError):
    """The access token was rejected by the provider; the user must log in again."""


@dataclass(frozen=True)
class Thumbnail:
    url: str
    width: int
    height: int


@dataclass(frozen=True)
class CatalogItem:
    video_id: str
    title: str
    description: str
    thumbnail: Thumbnail
    channel_id: str | None = None


@dataclass(frozen=True)
class CatalogPage:
    items: list[CatalogItem]
    next_page_token: str | None = None
    total_results: int | None = None
    channel_id: str = ""


class YouTubeCatalogClient:
    """Read-only access to the authenticated user's own videos."""

    def __init__(self, service: Any) -> None:
        self._service = service

    def list_uploads(self, page_token: str, page_size: int) -> CatalogPage:
        channels_response = _execute(
            self._service.channels().list(part="contentDetails", mine=True)
        )
        channels = _as_list(channels_response.get("items"))
        if not channels:
            LOGGER.info("youtube catalog no_channel_for_user")
            return CatalogPage(items=[])

        channel = _as_dict(channels[0])
        channel_id = _coerce_str(channel.get("id"))
        content_details = _as_dict(channel.get("contentDetails"))
        related = _as_dict(content_details.get("relatedPlaylists"))
        uploads_playlist_id = _coerce_str(related.get("uploads"))
        if not uploads_playlist_id:
            return CatalogPage(items=[], channel_id=channel_id)

        query_kwargs: dict[str, object] = {
            "part": "snippet",
            "playlistId": uploads_playlist_id,
            "maxResults": _clamp_page_size(page_size),
        }
        if page_token:
            query_kwargs["pageToken"] = page_token

        response = _execute(self._service.playlistItems().list(**query_kwargs))

        items: list[CatalogItem] = []
        for raw_item in _as_list(response.get("items")):
            snippet = _as_dict(_as_dict(raw_item).get("snippet"))
            resource = _as_dict(snippet.get("resourceId"))
            items.append(_snippet_to_item(snippet, video_id=resource.get("videoId")))

        return CatalogPage(
            items=items,
            next_page_token=_extract_next_page_token(response),
            total_results=_extract_total_results(response),
            channel_id=channel_id,
        )

    def search_mine(
        self,
        keyword: str,
        page_token: str,
        page_size: int,
        sort_order: str | None = None,
    ) -> CatalogPage:
        query_kwargs: dict[str, object] = {
            "part": "snippet",
            "q": keyword,
            "maxResults": _clamp_page_size(page_size),
            "order": sort_order or DEFAULT_SEARCH_ORDER,
            "type": "video",
            "forMine": True,
        }
        if page_token:
            query_kwargs["pageToken"] = page_token

        response = _execute(self._service.search().list(**query_kwargs))

        items: list[CatalogItem] = []
        for raw_item in _as_list(response.get("items")):
            item_dict = _as_dict(raw_item)
            snippet = _as_dict(item_dict.get("snippet"))
            identifier = _as_dict(item_dict.get("id"))
            items.append(_snippet_to_item(snippet, video_id=identifier.get("videoId")))

        channel_id = next((item.channel_id for item in items if item.channel_id), "")
        return CatalogPage(
            items=items,
            next_page_token=_extract_next_page_token(response),
            total_results=_extract_total_results(response),
            channel_id=channel_id,
        )


def build_catalog_client(access_token: str) -> YouTubeCatalogClient:
    try:
        credentials_module = import_module("google.oauth2.credentials")
        discovery_module = import_module("googleapiclient.discovery")
    except ImportError as exc:  # pragma: no cover - dependency controlled at runtime
        raise YouTubeServiceError(
            "YouTube access requires google-api-python-client and google-auth dependencies"
        ) from exc

    credentials_cls: Any = credentials_module.Credentials
    build_fn: Any = discovery_module.build

    credentials = credentials_cls(token=access_token, scopes=[YOUTUBE_READONLY_SCOPE])
    service = build_fn("youtube", "v3", credentials=credentials, cache_discovery=False)
    return YouTubeCatalogClient(service)


def _execute(request: Any) -> dict[str, Any]:
    try:
        return cast(dict[str, Any], request.execute())
    except Exception as exc:
        if _is_auth_error(exc):
            LOGGER.info(
                "youtube catalog auth_expired error_type=%s status=%s",
                type(exc).__name__,
                _http_status(exc),
            )
            raise YouTubeAuthExpiredError("YouTube authorization expired or was revoked") from None
        if _is_provider_http_error(exc):
            message = _first_error_message(exc)
            LOGGER.warning(
                "youtube catalog api_error status=%s reasons=%s",
                _http_status(exc),
                ",".join(_error_reasons(exc)),
            )
            raise YouTubeApiError(message) from None
        raise


def _is_auth_error(exc: Exception) -> bool:
    if type(exc).__module__.startswith("google.auth"):
        return True
    if not _is_provider_http_error(exc):
        return False
    if _http_status(exc) == 401:
        return True
    return any(reason.lower() in _AUTH_ERROR_REASONS for reason in _error_reasons(exc))


def _is_provider_http_error(exc: Exception) -> bool:
    return getattr(exc, "resp", None) is not None and hasattr(exc, "content")


def _http_status(exc: Exception) -> int | None:
    response = getattr(exc, "resp", None)
    status = getattr(response, "status", None)
    if isinstance(status, int):
        return status
    if isinstance(status, str) and status.strip().isdigit():
        return int(status.strip())
    return None


def _error_payload(exc: Exception) -> dict[str, Any]:
    content = getattr(exc, "content", None)
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    if not isinstance(content, str) or not content.strip():
        return {}
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        return {}
    return _as_dict(_as_dict(parsed).get("error"))


def _error_reasons(exc: Exception) -> list[str]:
    reasons: list[str] = []
    for entry in _as_list(_error_payload(exc).get("errors")):
        reason = _as_dict(entry).get("reason")
        if isinstance(reason, str) and reason.strip():
            reasons.append(reason.strip())
    return reasons


def _first_error_message(exc: Exception) -> str:
    # The full provider error echoes request parameters (client id, key), so only the
    # first structured message is ever surfaced.
    payload = _error_payload(exc)
    errors = _as_list(payload.get("errors"))
    if errors:
        message = _as_dict(errors[0]).get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    top_level = payload.get("message")
    if isinstance(top_level, str) and top_level.strip():
        return top_level.strip()
    return GENERIC_API_ERROR_MESSAGE


def _snippet_to_item(snippet: dict[str, Any], *, video_id: object) -> CatalogItem:
    # Every provider item becomes a record; page fullness is judged on the record count.
    thumbnails = _as_dict(snippet.get("thumbnails"))
    default_thumbnail = _as_dict(thumbnails.get("default"))
    channel_id = _coerce_str(snippet.get("channelId"))
    return CatalogItem(
        video_id=_coerce_str(video_id),
        title=_coerce_str(snippet.get("title")),
        description=_coerce_str(snippet.get("description")),
        thumbnail=Thumbnail(
            url=_coerce_str(default_thumbnail.get("url")),
            width=_coerce_int(default_thumbnail.get("width")),
            height=_coerce_int(default_thumbnail.get("height")),
        ),
        channel_id=channel_id or None,
    )


def _extract_next_page_token(response: dict[str, Any]) -> str | None:
    raw_next = response.get("nextPageToken")
    return raw_next if isinstance(raw_next, str) and raw_next.strip() else None


def _extract_total_results(response: dict[str, Any]) -> int | None:
    page_info = _as_dict(response.get("pageInfo"))
    total = page_info.get("totalResults")
    if isinstance(total, bool):
        return None
    if isinstance(total, int):
        return total
    return None


def _clamp_page_size(page_size: int) -> int:
    return max(1, min(MAX_RESULTS_CEILING, page_size))


def _coerce_str(raw_value: object) -> str:
    if isinstance(raw_value, str):
        return raw_value
    return ""


def _coerce_int(raw_value: object) -> int:
    if isinstance(raw_value, bool):
        return int(raw_value)
    if isinstance(raw_value, int):
        return raw_value
    if isinstance(raw_value, float):
        return int(raw_value)
    if isinstance(raw_value, str):
        try:
            return int(raw_value)
        except ValueError:
            return 0
    return 0


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        converted: dict[str, Any] = {}
        for key, item in raw_dict.items():
            if isinstance(key, str):
                converted[key] = item
        return converted
    return {}


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        raw_list = cast(list[Any], value)
        return list(raw_list)
    return []
