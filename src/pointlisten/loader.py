"""
Loading book data and audio assets from a directory or an HTTP base URL.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote, urljoin

import httpx
from tqdm.asyncio import tqdm

from .audio import AudioBackend, AudioHandle
from .errors import AudioBackendError, BookFormatError
from .models import Book

logger = logging.getLogger("pointlisten")

HTTP_TIMEOUT = 60.0
USER_AGENT = "pointlisten/0.1"


@dataclass(frozen=True)
class LoadFailure:
    filename: str
    reason: str


@dataclass
class AssetLoadResult:
    handles: dict[str, AudioHandle] = field(default_factory=dict)
    failures: list[LoadFailure] = field(default_factory=list)


def is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def resolve_location(base: str, name: str) -> str:
    """Location of an asset named in book data, relative to the book's base."""
    if is_url(base):
        return urljoin(base.rstrip("/") + "/", quote(name))
    return str(Path(base) / name)


def default_asset_base(book_source: str) -> str:
    """Assets live next to the book JSON unless told otherwise."""
    if is_url(book_source):
        return book_source.rsplit("/", 1)[0] + "/"
    return str(Path(book_source).parent)


def load_book(source: str) -> Book:
    """Read and parse a book JSON file or URL."""
    if is_url(source):
        r = httpx.get(
            source,
            headers={"accept": "application/json", "User-Agent": USER_AGENT},
            follow_redirects=True,
            timeout=HTTP_TIMEOUT,
        )
        if r.status_code != 200:
            raise RuntimeError(f"Could not fetch book {source}: {r.status_code} {r.reason_phrase}")
        raw = r.text
    else:
        with open(source, encoding="utf-8") as f:
            raw = f.read()

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise BookFormatError(f"{source} is not valid JSON: {e}") from e
    book = Book.from_dict(data)
    logger.info(f"Loaded book '{book.title}' ({len(book.hotspots)} hotspots) from {source}")
    return book


async def _fetch(client: httpx.AsyncClient | None, location: str) -> bytes:
    if client is not None and is_url(location):
        r = await client.get(location)
        if r.status_code != 200:
            raise RuntimeError(f"HTTP {r.status_code} {r.reason_phrase}")
        return r.content
    return await asyncio.to_thread(Path(location).read_bytes)


async def load_audio_assets(
    book: Book,
    base: str,
    backend: AudioBackend,
    max_concurrent: int = 4,
    progress: bool = False,
) -> AssetLoadResult:
    """Fetch and decode every audio file the book references.

    Files are loaded concurrently and may finish in any order. A file that
    cannot be fetched or decoded is recorded as a failure; the rest still load.
    """
    names = book.referenced_audio_files()
    result = AssetLoadResult()
    if not names:
        return result

    semaphore = asyncio.Semaphore(max_concurrent)

    async def load_one(client: httpx.AsyncClient | None, name: str) -> None:
        location = resolve_location(base, name)
        async with semaphore:
            try:
                data = await _fetch(client, location)
                handle = await asyncio.to_thread(backend.decode, name, data)
            except (httpx.HTTPError, OSError, RuntimeError, AudioBackendError) as e:
                logger.warning(f"Audio file {name} failed to load: {e}")
                result.failures.append(LoadFailure(filename=name, reason=str(e)))
                return
        result.handles[name] = handle

    if is_url(base):
        async with httpx.AsyncClient(
            follow_redirects=True, timeout=HTTP_TIMEOUT, headers={"User-Agent": USER_AGENT}
        ) as client:
            await tqdm.gather(
                *(load_one(client, n) for n in names), desc="Loading audio", disable=not progress
            )
    else:
        await tqdm.gather(
            *(load_one(None, n) for n in names), desc="Loading audio", disable=not progress
        )

    logger.info(f"Audio ready: {len(result.handles)} loaded, {len(result.failures)} failed")
    return result
