import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from ..models.episode import EpisodeMetadata
from ..utils.logger import get_logger

logger = get_logger(__name__)

SPOTIFY_OEMBED_URL = "https://open.spotify.com/oembed"
LISTENNOTES_SEARCH_URL = "https://listen-api.listennotes.com/api/v2/search"

_SPOTIFY_EPISODE_RE = re.compile(r"^https://open\.spotify\.com/episode/([a-zA-Z0-9]+)")

LOOKUP_TIMEOUT = httpx.Timeout(connect=5.0, read=20.0, write=5.0, pool=5.0)


def is_valid_spotify_url(url: str) -> bool:
    return bool(_SPOTIFY_EPISODE_RE.match(url))


def extract_spotify_episode_id(url: str) -> Optional[str]:
    match = re.search(r"/episode/([a-zA-Z0-9]+)", url)
    return match.group(1) if match else None


def _normalized(value: Optional[str]) -> str:
    return (value or "").lower().strip()


def select_best_match(results: List[Dict[str, Any]], title: str, show_name: str) -> Optional[Dict[str, Any]]:
    """Picks the search result that best matches the oEmbed title and show.

    Exact title with a matching show wins, then a title containing ours with a
    matching show, then simply the first result.
    """
    if not results:
        return None

    title_lower = _normalized(title)
    show_lower = _normalized(show_name)

    def show_matches(result: Dict[str, Any]) -> bool:
        result_show = _normalized((result.get("podcast") or {}).get("title_original"))
        return show_lower in result_show or result_show in show_lower

    for result in results:
        if _normalized(result.get("title_original")) == title_lower and (not show_lower or show_matches(result)):
            return result

    if show_lower:
        for result in results:
            if title_lower in _normalized(result.get("title_original")) and show_matches(result):
                return result

    return results[0]


async def _fetch_oembed(client: httpx.AsyncClient, episode_url: str) -> EpisodeMetadata:
    response = await client.get(SPOTIFY_OEMBED_URL, params={"url": episode_url})
    if response.status_code >= 400:
        raise ValueError("Failed to fetch episode metadata from Spotify oEmbed")
    data = response.json()

    title = data.get("title") or "Unknown Episode"
    show_name = ""
    # Spotify titles look like "Episode • Show"
    if " • " in title:
        title, _, show_name = title.partition(" • ")

    return EpisodeMetadata(
        title=title,
        show_name=show_name,
        thumbnail_url=data.get("thumbnail_url") or "",
    )


async def _enrich_from_listennotes(client: httpx.AsyncClient, metadata: EpisodeMetadata, api_key: str):
    query = f"{metadata.title} {metadata.show_name}" if metadata.show_name else metadata.title
    logger.info("Searching Listen Notes for %r", query)
    response = await client.get(
        LISTENNOTES_SEARCH_URL,
        params={"q": query, "type": "episode"},
        headers={"X-ListenAPI-Key": api_key},
    )
    if response.status_code >= 400:
        logger.error("Listen Notes API error: %s", response.status_code)
        return

    match = select_best_match(response.json().get("results") or [], metadata.title, metadata.show_name)
    if match is None:
        logger.info("No Listen Notes results for %r", metadata.title)
        return

    podcast = match.get("podcast") or {}
    logger.info(
        "Listen Notes match: %s | %s | %ss",
        match.get("title_original"),
        podcast.get("title_original"),
        match.get("audio_length_sec"),
    )
    metadata.duration = match.get("audio_length_sec") or metadata.duration
    metadata.audio_url = match.get("audio") or None
    metadata.show_name = podcast.get("title_original") or metadata.show_name
    metadata.description = match.get("description_original") or metadata.description
    if match.get("pub_date_ms"):
        published = datetime.fromtimestamp(match["pub_date_ms"] / 1000, tz=timezone.utc)
        metadata.publish_date = published.isoformat()
    thumbnail = match.get("thumbnail") or ""
    if len(thumbnail) > len(metadata.thumbnail_url):
        metadata.thumbnail_url = thumbnail

    if metadata.audio_url:
        try:
            head = await client.head(metadata.audio_url, follow_redirects=True)
            content_length = head.headers.get("content-length")
            if content_length:
                metadata.audio_file_size = int(content_length)
        except httpx.HTTPError as e:
            logger.warning("Failed to fetch audio file size: %s", e)


async def lookup_episode_metadata(
    episode_url: str,
    listennotes_api_key: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> EpisodeMetadata:
    """Best-effort metadata for a Spotify episode URL.

    oEmbed is free and always used; Listen Notes adds duration and a direct
    audio URL when a key is configured. Listen Notes failures are logged and
    the oEmbed data is returned.
    """
    if not is_valid_spotify_url(episode_url):
        raise ValueError("Invalid Spotify episode URL")

    if client is None:
        async with httpx.AsyncClient(timeout=LOOKUP_TIMEOUT) as own_client:
            return await lookup_episode_metadata(episode_url, listennotes_api_key, own_client)

    metadata = await _fetch_oembed(client, episode_url)

    if not listennotes_api_key:
        logger.info("Listen Notes API key not configured, using oEmbed data only")
        return metadata

    try:
        await _enrich_from_listennotes(client, metadata, listennotes_api_key)
    except (httpx.HTTPError, ValueError) as e:
        logger.error("Listen Notes lookup failed: %s", e)
    return metadata
