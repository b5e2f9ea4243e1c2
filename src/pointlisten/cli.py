"""
Command-line driver: open a book, replay a script of taps, listen.
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

import httpx
from dotenv import load_dotenv

from .audio import make_backend
from .errors import BookFormatError
from .loader import default_asset_base, load_book
from .models import Book, SessionSnapshot
from .reader import Reader
from .session import PlaybackSession

logger = logging.getLogger("pointlisten")


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


class AppendTap(argparse.Action):
    """Collects --tap and --tap-at into one list, in command-line order."""

    def __call__(self, parser, namespace, values, option_string=None):
        taps = list(getattr(namespace, self.dest, None) or [])
        if option_string == "--tap-at":
            try:
                taps.append(("at", (int(values[0]), float(values[1]), float(values[2]))))
            except ValueError:
                parser.error(f"--tap-at expects PAGE X Y numbers, got {' '.join(values)}")
        else:
            taps.append(("id", values))
        setattr(namespace, self.dest, taps)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    ap = argparse.ArgumentParser(description="Point-and-listen book player")

    # IO
    ap.add_argument("--book", required=True, help="Book JSON file or http(s) URL")
    ap.add_argument(
        "--assets",
        default=None,
        help="Directory or URL holding the audio files (default: next to the book)",
    )
    ap.add_argument(
        "--backend",
        choices=["pygame", "silent"],
        default=os.getenv("POINTLISTEN_BACKEND", "pygame"),
        help="Audio output backend",
    )
    ap.add_argument(
        "--max-concurrent",
        type=int,
        default=int(os.getenv("POINTLISTEN_MAX_CONCURRENT_LOADS", "4")),
        help="Max audio files loaded at once",
    )
    ap.add_argument("--list", action="store_true", help="List hotspots and exit")

    # Playback script
    ap.add_argument("--mode", choices=["normal", "sequential"], default="normal")
    ap.add_argument(
        "--tap", dest="taps", action=AppendTap, default=[], metavar="HOTSPOT_ID", help="Tap a hotspot"
    )
    ap.add_argument(
        "--tap-at",
        dest="taps",
        action=AppendTap,
        nargs=3,
        metavar=("PAGE", "X", "Y"),
        help="Tap a point given in percent of the page",
    )

    # Repeat
    ap.add_argument("--repeat", nargs=2, metavar=("START_ID", "END_ID"), default=None)
    ap.add_argument("--repeat-seconds", type=float, default=10.0)
    ap.add_argument(
        "--repeat-gap",
        type=float,
        default=float(os.getenv("POINTLISTEN_REPEAT_GAP", "0.5")),
        help="Pause between repeat passes (seconds)",
    )

    # Logging
    ap.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    return ap.parse_args(argv)


def print_hotspots(book: Book, session: PlaybackSession) -> None:
    print(f"{book.title or book.pdf}: {len(book.hotspots)} hotspots")
    for h in book.hotspots:
        flag = "  " if h.id not in session.unavailable_hotspots else "x "
        text = f"  {h.text}" if h.text else ""
        print(
            f"{flag}{h.id:<20} p.{h.page_number:<4} {h.audio_start:8.2f}s - {h.audio_end:8.2f}s "
            f"{book.audio_file_for(h)}{text}"
        )


async def wait_until_idle(session: PlaybackSession) -> None:
    idle = asyncio.Event()

    def on_snapshot(snapshot: SessionSnapshot) -> None:
        if snapshot.current_hotspot_id is None and not snapshot.queue_pending:
            idle.set()

    unsubscribe = session.subscribe(on_snapshot)
    try:
        on_snapshot(session.snapshot())
        await idle.wait()
    finally:
        unsubscribe()


def log_snapshot(snapshot: SessionSnapshot) -> None:
    logger.debug(
        f"[{snapshot.mode.value}] current={snapshot.current_hotspot_id} "
        f"queue={snapshot.queue_length} repeat={snapshot.repeat_start_id}->{snapshot.repeat_end_id} "
        f"pass={snapshot.repeat_iteration} paused={snapshot.repeat_paused}"
    )


async def play_script(reader: Reader, session: PlaybackSession, args: argparse.Namespace) -> None:
    session.subscribe(log_snapshot)
    if args.mode == "sequential":
        session.enter_sequential_mode()

    for kind, value in args.taps:
        if kind == "id":
            reader.tap_hotspot(value)
        else:
            page, x, y = value
            if reader.tap(page, x, y) is None:
                logger.warning(f"No hotspot at page {page} ({x}%, {y}%)")
        # Normal mode preempts, so let each tap finish before the next one.
        if args.mode == "normal":
            await wait_until_idle(session)
    await wait_until_idle(session)

    if args.repeat:
        start_id, end_id = args.repeat
        session.enter_repeat_mode()
        reader.tap_hotspot(start_id)
        reader.tap_hotspot(end_id)
        snapshot = session.snapshot()
        if snapshot.last_error is not None:
            logger.error(f"Repeat not started: {snapshot.last_error}")
        else:
            await asyncio.sleep(args.repeat_seconds)
        session.exit_repeat_mode()


async def main_async(argv: list[str] | None = None) -> int:
    """Main async CLI entry point."""
    # Load environment variables from .env file
    project_root = Path(__file__).parent.parent.parent
    env_path = project_root / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()

    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        book = load_book(args.book)
    except (OSError, RuntimeError, httpx.HTTPError, BookFormatError) as e:
        logger.error(f"Could not load book {args.book}: {e}")
        return 1

    backend = make_backend(args.backend)
    reader = Reader(
        backend,
        repeat_gap=args.repeat_gap,
        max_concurrent=args.max_concurrent,
        progress=True,
    )
    try:
        session = await reader.open_book(book, args.assets or default_asset_base(args.book))
        if session is None:
            return 1
        if args.list:
            print_hotspots(book, session)
            return 0
        await play_script(reader, session, args)
    finally:
        reader.close_book()
        backend.shutdown()
    logger.info("Done")
    return 0


def main() -> None:
    """Main CLI entry point."""
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
