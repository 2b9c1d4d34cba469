"""Tide — composable, cancellable value streams.

Two pipelines are built on the stream layer:

    PostsFeed           fetch -> validate -> decode -> publish a list of posts
    CompositePipeline   ticking counter + debounced text validity -> button gate

Quick start::

    import asyncio
    import tide

    async def main():
        async with tide.PostsFeed(tide.TideConfig()) as feed:
            posts = await feed.load()
            print(len(posts))

    asyncio.run(main())

Streams on their own::

    from tide.stream import ValueSubject, VirtualScheduler

    scheduler = VirtualScheduler()
    text = ValueSubject("")
    text.debounce(0.5, scheduler).map(len).subscribe(print)

"""

__version__ = "0.1.0-dev"
__all__ = [
    "CompositePipeline",
    "PostsFeed",
    "TideConfig",
    "__version__",
    "load_config",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import tide`` fast; httpx is only imported when the posts feed
    is first touched.
    """
    if name == "TideConfig":
        from tide.config import TideConfig

        return TideConfig

    if name == "load_config":
        from tide.config_loader import load_config

        return load_config

    if name == "PostsFeed":
        from tide.posts.feed import PostsFeed

        return PostsFeed

    if name == "CompositePipeline":
        from tide.composite.pipeline import CompositePipeline

        return CompositePipeline

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
