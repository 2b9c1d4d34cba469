"""Tide CLI — tide posts / tide gate.

Entry point for the ``tide`` command-line interface.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from tide._errors import TideError

if TYPE_CHECKING:
    from tide.composite.pipeline import CompositeSnapshot
    from tide.config import TideConfig
    from tide.observability.collector import StackCollector
    from tide.posts.models import Post

# Delay between simulated keystrokes in ``tide gate``.
_KEYSTROKE_INTERVAL = 0.1


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the tide CLI."""
    parser = argparse.ArgumentParser(
        prog="tide",
        description="Value-stream pipelines: a posts feed and a gated counter.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )
    parser.add_argument("--verbose", action="store_true", help="Log pipeline events to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # tide posts
    posts_parser = subparsers.add_parser("posts", help="Fetch the posts list once and print it")
    posts_parser.add_argument("root", nargs="?", default=".", help="Directory holding tide.yaml")
    posts_parser.add_argument("--url", default=None, help="Override the posts URL")
    posts_parser.add_argument("--limit", type=int, default=0, help="Print at most N posts (0=all)")
    posts_parser.add_argument(
        "--body", action="store_true", help="Print each post's body under its title",
    )

    # tide gate
    gate_parser = subparsers.add_parser(
        "gate",
        help="Type TEXT into the composite pipeline and watch the button gate",
    )
    gate_parser.add_argument("text", help="Text to type, one character per 0.1s")
    gate_parser.add_argument("root", nargs="?", default=".", help="Directory holding tide.yaml")
    gate_parser.add_argument("--seconds", type=float, default=12.0, help="How long to run")

    return parser


def _get_version() -> str:
    """Get the package version."""
    from tide import __version__

    return __version__


def _format_snapshot(snap: CompositeSnapshot) -> str:
    button = "enabled" if snap.show_button else "disabled"
    return (
        f"count={snap.count_label:>3}  text={snap.text!r}  "
        f"valid={snap.text_is_valid} [{snap.validity_icon}]  button={button}"
    )


def _format_post(post: Post, *, body: bool = False) -> str:
    line = f"{post.id:>4}  {post.title}"
    if not body:
        return line
    indented = "\n".join(f"      {text}" for text in post.body.splitlines())
    return f"{line}\n{indented}" if indented else line


def _summarize(collector: StackCollector) -> str:
    log = collector.log
    outcomes = ", ".join(f"{name}={n}" for name, n in sorted(log.outcomes().items()))
    summary = f"  {len(log)} events recorded (max {log.max_events})"
    return f"{summary}; fetches: {outcomes}" if outcomes else summary


async def _run_posts(config: TideConfig, limit: int, body: bool = False) -> int:
    from tide.observability.collector import StackCollector
    from tide.posts.feed import PostsFeed

    collector = StackCollector.from_config(config)
    try:
        async with PostsFeed(config, collector=collector) as feed:
            posts = await feed.load()
    finally:
        if config.verbose:
            print(_summarize(collector), file=sys.stderr)
    shown = posts[:limit] if limit > 0 else posts
    for post in shown:
        print(_format_post(post, body=body))
    if len(shown) < len(posts):
        print(f"... {len(posts) - len(shown)} more")
    return 0


async def _run_gate(config: TideConfig, text: str, seconds: float) -> int:
    from tide.composite.pipeline import CompositePipeline
    from tide.observability.collector import StackCollector
    from tide.stream.core import SubscriptionSet
    from tide.stream.scheduler import LoopScheduler

    collector = StackCollector.from_config(config)
    pipeline = CompositePipeline(config, scheduler=LoopScheduler(), collector=collector)
    last: CompositeSnapshot | None = None

    def show(_: object) -> None:
        nonlocal last
        snap = pipeline.snapshot()
        if snap != last:
            print(_format_snapshot(snap))
            last = snap

    with pipeline, SubscriptionSet() as watch:
        for subject in (pipeline.count, pipeline.text_is_valid, pipeline.show_button):
            watch.add(subject.subscribe(show))
        for end in range(1, len(text) + 1):
            pipeline.set_text(text[:end])
            await asyncio.sleep(_KEYSTROKE_INTERVAL)
        await asyncio.sleep(max(0.0, seconds - _KEYSTROKE_INTERVAL * len(text)))
    if config.verbose:
        print(_summarize(collector), file=sys.stderr)
    return 0


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from tide.config_loader import load_config

    try:
        if args.command == "posts":
            config = load_config(Path(args.root), posts_url=args.url, verbose=args.verbose or None)
            code = asyncio.run(_run_posts(config, args.limit, args.body))
        else:
            config = load_config(Path(args.root), verbose=args.verbose or None)
            code = asyncio.run(_run_gate(config, args.text, args.seconds))
    except TideError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)
    sys.exit(code)


if __name__ == "__main__":
    main()
