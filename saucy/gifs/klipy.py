"""Klipy GIF search client with an offline fallback catalogue."""

from __future__ import annotations

import random
from typing import Any, Dict, List, Literal, Optional

import requests
from pydantic import BaseModel, Field

from ..util.logging import emit_event, get_logger, register_secret, scrub

logger = get_logger(__name__)

ContentType = Literal["gifs", "stickers", "memes", "clips"]
ItemType = Literal["gif", "sticker", "clip", "meme"]

ITEM_TYPES: Dict[str, str] = {"gifs": "gif", "stickers": "sticker", "memes": "meme", "clips": "clip"}

DEFAULT_WIDTH = 480
DEFAULT_HEIGHT = 270


class KlipyUnavailable(RuntimeError):
    """Raised internally when the API cannot answer and the fallback should take over."""


class KlipyItem(BaseModel):
    id: str
    url: str
    preview_url: str = ""
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    type: ItemType = "gif"
    title: str = ""
    tags: List[str] = Field(default_factory=list)
    media_formats: Dict[str, Any] = Field(default_factory=dict)


class KlipyCategory(BaseModel):
    name: str
    search_term: str
    image_url: Optional[str] = None


def _gif(item_id: str, slug: str, width: int, height: int, title: str, tags: List[str], kind: ItemType = "gif") -> KlipyItem:
    return KlipyItem(
        id=item_id,
        url=f"https://media.giphy.com/media/{slug}/giphy.gif",
        preview_url=f"https://media.giphy.com/media/{slug}/200.gif",
        width=width,
        height=height,
        type=kind,
        title=title,
        tags=tags,
    )


FALLBACK_GIFS: List[KlipyItem] = [
    _gif("g1", "l0MYt5jPR6QX5pnqM", 480, 270, "Dance Happy", ["dance", "happy", "excited", "celebration"]),
    _gif("g2", "xT9IgG50Fb7Mi0prBC", 480, 366, "Excited Jump", ["excited", "happy", "jumping"]),
    _gif("g3", "3oriO0OEd9QIDdllqo", 480, 480, "Laughing Hard", ["laugh", "funny", "lol"]),
    _gif("g4", "26ufdipQqU2lhNA4g", 480, 480, "Thumbs Up", ["thumbs up", "good", "approve"]),
    _gif("g5", "artj92V8o75VPL7AeQ", 480, 270, "Mind Blown", ["mind blown", "wow", "amazing"]),
    _gif("g6", "OPU6wzx8JrHna", 390, 377, "Crying", ["cry", "sad", "tears"]),
    _gif("g7", "mlvseq9yvZhba", 245, 180, "Happy Cat", ["cat", "cute", "happy"]),
    _gif("g8", "JIX9t2j0ZTN9S", 245, 137, "Cat Typing", ["cat", "typing", "work", "funny"]),
    _gif("g9", "4Zo41lhzKt6iZ8xff9", 480, 480, "Dog Excited", ["dog", "excited", "happy"]),
    _gif("g10", "13GIgrGdslD9oQ", 420, 315, "Success Kid", ["success", "work", "yes", "win"]),
    _gif("g11", "l46CyJmS9KUbokzsI", 480, 472, "Eye Roll", ["eye roll", "annoyed", "whatever"]),
    _gif("g12", "62PP2yEIAZF6g", 480, 480, "Deal With It", ["cool", "sunglasses", "deal with it"]),
    _gif("g13", "a3zqvrH40Cdhu", 480, 256, "Clapping", ["clap", "applause", "bravo"]),
    _gif("g14", "3oEjI6SIIHBdRxXI40", 480, 480, "Shock", ["shocked", "surprised", "omg"]),
    _gif("g15", "26BRv0ThflsHCqDrG", 480, 480, "Thinking", ["think", "thinking", "hmm"]),
    _gif("g16", "xUPGcDDE4aj4wNKsaQ", 480, 360, "Coffee Time", ["coffee", "morning", "drink"]),
    _gif("g17", "26u4cqiYI30juCOGY", 480, 480, "Fire", ["fire", "hot", "lit", "awesome"]),
    _gif("g18", "xT9IgEZTTWLdfGv0I0", 480, 349, "Hello Wave", ["hello", "hi", "wave", "greeting"]),
    _gif("g19", "dzaUX7CAG0Ihi", 500, 300, "Thank You", ["thanks", "thank you", "grateful"]),
    _gif("g20", "IeLOBZb7ZdQ1G", 400, 225, "High Five", ["high five", "teamwork", "celebrate"]),
]

FALLBACK_STICKERS: List[KlipyItem] = [
    _gif("s1", "3oEjI6SIIHBdRxXI40", 480, 480, "Heart", ["heart", "love", "romantic"], "sticker"),
    _gif("s2", "26BRv0ThflsHCqDrG", 480, 480, "Star", ["star", "sparkle", "shine"], "sticker"),
    _gif("s3", "l0ExbnGIX9sMFS7PG", 480, 480, "Fire", ["fire", "hot", "flames"], "sticker"),
    _gif("s4", "3o6ZsYm53kHOvgKWyI", 480, 480, "Sparkles", ["sparkle", "glitter", "magic"], "sticker"),
    _gif("s5", "3o7TKnO6Wve6502iJ2", 480, 480, "Thumbs Up", ["thumbs up", "good", "yes"], "sticker"),
]

DEFAULT_CATEGORIES: List[KlipyCategory] = [
    KlipyCategory(name=name, search_term=term)
    for name, term in (
        ("Reactions", "reaction"),
        ("Happy", "happy"),
        ("Sad", "sad"),
        ("Love", "love"),
        ("Funny", "funny"),
        ("Animals", "animals"),
        ("Cats", "cat"),
        ("Dogs", "dog"),
        ("Celebrate", "celebrate"),
        ("Work", "work"),
    )
]


def unwrap_items(body: Any) -> Optional[List[Dict[str, Any]]]:
    """Find the item list in any of the envelopes the API has been seen to return."""
    if isinstance(body, list):
        return body
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("data"), list):
        return data["data"]
    for key in ("results", "gifs"):
        if isinstance(body.get(key), list):
            return body[key]
    return None


def _first_format(group: Dict[str, Any]) -> Dict[str, Any]:
    return group.get("gif") or group.get("webp") or {}


def to_item(raw: Dict[str, Any], content_type: str) -> KlipyItem:
    """Map one raw API item to a KlipyItem, preferring HD renditions over SD and flat URLs."""
    file = raw.get("file") or {}
    hd = _first_format(file.get("hd") or {})
    sd = _first_format(file.get("sd") or {})
    preview = _first_format(file.get("preview") or {}) or (file.get("thumbnail") or {}).get("gif") or {}

    formats = raw.get("media_formats") or raw.get("media") or {}
    if not isinstance(formats, dict):
        formats = {}
    gif_format = formats.get("gif") or formats.get("original") or {}
    preview_format = formats.get("thumbnail") or formats.get("preview") or formats.get("tinygif") or {}

    url = hd.get("url") or sd.get("url") or raw.get("url") or gif_format.get("url") or (raw.get("gif") or {}).get("url") or ""
    preview_url = (
        preview.get("url")
        or sd.get("url")
        or raw.get("preview_url")
        or preview_format.get("url")
        or (raw.get("thumbnail") or {}).get("url")
        or url
    )
    slug = raw.get("slug") or ""
    return KlipyItem(
        id=str(raw.get("id") or raw.get("_id") or slug or url),
        url=url,
        preview_url=preview_url,
        width=hd.get("width") or sd.get("width") or raw.get("width") or gif_format.get("width") or DEFAULT_WIDTH,
        height=hd.get("height") or sd.get("height") or raw.get("height") or gif_format.get("height") or DEFAULT_HEIGHT,
        type=ITEM_TYPES.get(content_type, "clip"),  # type: ignore[arg-type]
        title=raw.get("title") or raw.get("content_description") or slug.replace("-", " "),
        tags=list(raw.get("tags") or []),
        media_formats=file,
    )


def fallback_source(content_type: str) -> List[KlipyItem]:
    return FALLBACK_STICKERS if content_type == "stickers" else FALLBACK_GIFS


def fallback_search(query: str, content_type: str, limit: int) -> List[KlipyItem]:
    """Score the local catalogue: exact tag 10, partial tag 5, title substring 3 per term."""
    sources = fallback_source(content_type)
    terms = query.lower().split()
    scored = []
    for index, item in enumerate(sources):
        score = 0
        title = item.title.lower()
        for term in terms:
            if any(tag == term for tag in item.tags):
                score += 10
            elif any(term in tag for tag in item.tags):
                score += 5
            if term in title:
                score += 3
        if score > 0:
            scored.append((-score, index, item))
    matched = [item for _, _, item in sorted(scored, key=lambda entry: entry[:2])]
    return (matched or sources)[:limit]


class KlipyClient:
    """Search, trending and category lookups against the Klipy API."""

    BASE_URL = "https://api.klipy.com/api/v1"

    def __init__(
        self,
        api_key: Optional[str],
        *,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.api_key = api_key or ""
        register_secret(self.api_key)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.rng = rng or random.Random()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _url(self, path: str) -> str:
        if not self.api_key:
            raise KlipyUnavailable("Klipy API key not configured")
        return f"{self.BASE_URL}/{self.api_key}{path}"

    def _get(self, path: str, params: Dict[str, Any]) -> Any:
        url = self._url(path)
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise KlipyUnavailable(f"Klipy request failed: {scrub(str(exc), self.api_key)}") from exc
        if response.status_code >= 400:
            raise KlipyUnavailable(f"Klipy API error: {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise KlipyUnavailable("Klipy returned a non-JSON body") from exc

    def search(
        self,
        query: str,
        type: ContentType = "gifs",
        limit: int = 24,
        offset: int = 0,
        locale: str = "en",
    ) -> List[KlipyItem]:
        if not query.strip():
            return self.trending(type, limit, locale)
        try:
            body = self._get(f"/{type}/search", {"q": query, "limit": limit, "offset": offset, "locale": locale})
            items = unwrap_items(body)
            if items is None:
                raise KlipyUnavailable("Unexpected Klipy response format")
        except KlipyUnavailable as exc:
            logger.warning("%s; using fallback search for %r", exc, query)
            return fallback_search(query, type, limit)
        emit_event(logger, "klipy.search", query=query, type=type, count=len(items))
        return [to_item(item, type) for item in items]

    def trending(self, type: ContentType = "gifs", limit: int = 24, locale: str = "en") -> List[KlipyItem]:
        try:
            body = self._get(f"/{type}/trending", {"limit": limit, "locale": locale})
            items = unwrap_items(body)
            if items is None:
                raise KlipyUnavailable("Unexpected Klipy trending response format")
        except KlipyUnavailable as exc:
            logger.warning("%s; using fallback trending for %s", exc, type)
            sources = list(fallback_source(type))
            self.rng.shuffle(sources)
            return sources[:limit]
        return [to_item(item, type) for item in items]

    def categories(self, type: ContentType = "gifs") -> List[KlipyCategory]:
        try:
            body = self._get(f"/{type}/categories", {})
        except KlipyUnavailable as exc:
            logger.warning("%s; using default categories", exc)
            return list(DEFAULT_CATEGORIES)
        raw = body
        if isinstance(body, dict):
            raw = body.get("categories") or body.get("data") or []
        if not isinstance(raw, list):
            return list(DEFAULT_CATEGORIES)
        categories = []
        for entry in raw:
            if not isinstance(entry, dict) or not entry.get("name"):
                continue
            categories.append(
                KlipyCategory(
                    name=entry["name"],
                    search_term=entry.get("search_term") or entry.get("query") or entry["name"].lower(),
                    image_url=entry.get("image_url") or entry.get("image"),
                )
            )
        return categories or list(DEFAULT_CATEGORIES)

    def record_share(self, item_id: str, type: ContentType = "gifs") -> bool:
        """Report a share for analytics; failures are logged and ignored."""
        try:
            response = self.session.post(self._url(f"/{type}/share"), json={"id": item_id}, timeout=self.timeout)
        except (KlipyUnavailable, requests.RequestException) as exc:
            logger.info("Share recording skipped: %s", scrub(str(exc), self.api_key))
            return False
        return response.status_code < 400


__all__ = [
    "DEFAULT_CATEGORIES",
    "FALLBACK_GIFS",
    "FALLBACK_STICKERS",
    "KlipyCategory",
    "KlipyClient",
    "KlipyItem",
    "fallback_search",
    "to_item",
    "unwrap_items",
]
