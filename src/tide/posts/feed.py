"""Posts feed — fetch, validate, decode, publish.

One ``fetch()`` is one pass through the pipeline:

    1. Fetch     one GET via httpx, run as an asyncio task
    2. Validate  response present and status in 200-299, else BadServerResponse
    3. Decode    JSON array of Post, else DecodeError
    4. Publish   replace ``posts`` wholesale on the publish scheduler

A failure at any step ends the attempt with a completion carrying the error;
``posts`` keeps its previous value.  Cancelling the returned handle stops the
request and guarantees nothing is published afterwards.
"""

from __future__ import annotations

import asyncio
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from tide._errors import BadServerResponse, InvalidURL, NetworkError
from tide.observability.events import now_ns
from tide.posts.models import Post
from tide.stream.core import SubscriptionSet
from tide.stream.operators import from_awaitable
from tide.stream.scheduler import LoopScheduler
from tide.stream.subjects import ValueSubject

if TYPE_CHECKING:
    from collections.abc import Callable

    from tide._types import Url
    from tide.config import TideConfig
    from tide.observability.collector import StackCollector
    from tide.posts.models import PostList
    from tide.stream.core import Subscription
    from tide.stream.scheduler import Scheduler

    type CompletionHandler = Callable[[Completion], None]

_SUPPORTED_SCHEMES = frozenset({"http", "https"})


@dataclass(frozen=True, slots=True)
class FetchOutput:
    """Raw result of the request step.

    Attributes:
        data: Response body bytes.
        response: The HTTP response, or None when the transport gave no
            response metadata.

    """

    data: bytes
    response: httpx.Response | None


@dataclass(frozen=True, slots=True)
class Completion:
    """How one fetch attempt ended.

    Attributes:
        url: The requested location.
        error: The error that stopped the pipeline, or None when the posts
            were published.

    """

    url: Url
    error: Exception | None = None

    @property
    def finished(self) -> bool:
        return self.error is None

    def __str__(self) -> str:
        if self.error is None:
            return "finished"
        return f"failure({type(self.error).__name__}: {self.error})"


def validate_url(url: Url) -> httpx.URL:
    """Parse and check a fetch location.

    Raises:
        InvalidURL: If ``url`` is malformed, not http(s), or has no host.

    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as exc:
        msg = f"invalid posts URL {url!r}: {exc}"
        raise InvalidURL(msg) from exc
    if parsed.scheme not in _SUPPORTED_SCHEMES or not parsed.host:
        msg = f"invalid posts URL {url!r}: expected an absolute http(s) URL"
        raise InvalidURL(msg)
    return parsed


def validate_response(output: FetchOutput) -> bytes:
    """Pass the body through if the response is a 2xx.

    Raises:
        BadServerResponse: If there is no response or the status is not 2xx.

    """
    response = output.response
    if response is None:
        raise BadServerResponse(None)
    if not 200 <= response.status_code <= 299:
        raise BadServerResponse(response.status_code)
    return output.data


class _Attempt:
    """Bookkeeping for one in-flight fetch."""

    __slots__ = ("on_completion", "settled", "started_ns")

    def __init__(self, started_ns: int, on_completion: CompletionHandler | None) -> None:
        self.started_ns = started_ns
        self.on_completion = on_completion
        self.settled = False


class PostsFeed:
    """Owns the published post list and the fetches that replace it.

    Args:
        config: Supplies ``posts_url``, ``request_timeout``, ``user_agent``
            and ``verbose``.
        client: Optional shared ``httpx.AsyncClient``.  When omitted, each
            fetch opens and closes its own client.  A supplied client is
            never closed by the feed.
        scheduler: Publish context.  Defaults to the running asyncio loop.
        collector: Optional event collector.
        on_completion: Called with a ``Completion`` after every attempt that
            was not cancelled.

    Raises:
        InvalidURL: If ``config.posts_url`` cannot be fetched.

    """

    PIPELINE = "posts"

    def __init__(
        self,
        config: TideConfig,
        *,
        client: httpx.AsyncClient | None = None,
        scheduler: Scheduler | None = None,
        collector: StackCollector | None = None,
        on_completion: CompletionHandler | None = None,
    ) -> None:
        self._url = validate_url(config.posts_url)
        self._config = config
        self._client = client
        self._scheduler = scheduler if scheduler is not None else LoopScheduler()
        self._collector = collector
        self._on_completion = on_completion
        self._subscriptions = SubscriptionSet()
        self.posts: ValueSubject[PostList] = ValueSubject(())

    @property
    def url(self) -> Url:
        return str(self._url)

    @property
    def in_flight(self) -> int:
        """Number of fetches that have not settled or been cancelled."""
        return len(self._subscriptions)

    def fetch(self, *, on_completion: CompletionHandler | None = None) -> Subscription:
        """Start one fetch and return its cancellation handle.

        Must be called from a running event loop.

        Args:
            on_completion: Extra completion callback for this attempt only.

        """
        if self._collector is not None:
            started = self._collector.record_fetch_started(self.url)
        else:
            started = now_ns()
        attempt = _Attempt(started, on_completion)

        stream = (
            from_awaitable(self._request)
            .receive_on(self._scheduler)
            .try_map(validate_response)
            .decode(Post, many=True)
        )
        subscription = stream.subscribe(
            self._publish,
            lambda exc: self._settle(attempt, Completion(self.url, _as_exception(exc))),
            lambda: self._settle(attempt, Completion(self.url)),
        )
        subscription.add(lambda: self._abandon(attempt))
        return self._subscriptions.add(subscription)

    async def load(self) -> PostList:
        """Fetch once and return the published posts.

        Raises:
            FetchError: The error that ended the attempt.

        """
        future: asyncio.Future[PostList] = asyncio.get_running_loop().create_future()

        def settle(completion: Completion) -> None:
            if future.done():
                return
            if completion.error is not None:
                future.set_exception(completion.error)
            else:
                future.set_result(self.posts.value)

        subscription = self.fetch(on_completion=settle)
        try:
            return await future
        finally:
            subscription.cancel()

    def close(self) -> None:
        """Cancel every in-flight fetch.  ``posts`` keeps its last value."""
        self._subscriptions.reset()

    async def __aenter__(self) -> PostsFeed:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    async def _request(self) -> FetchOutput:
        try:
            if self._client is not None:
                response = await self._client.get(self._url)
            else:
                async with httpx.AsyncClient(
                    timeout=self._config.request_timeout,
                    headers={"User-Agent": self._config.user_agent},
                    follow_redirects=True,
                ) as client:
                    response = await client.get(self._url)
        except httpx.TransportError as exc:
            msg = f"request to {self.url} failed: {exc!r}"
            raise NetworkError(msg) from exc
        return FetchOutput(data=response.content, response=response)

    def _publish(self, posts: PostList) -> None:
        self.posts.send(posts)
        if self._collector is not None:
            self._collector.record_publish(self.PIPELINE, "posts", len(posts))
        if self._config.verbose:
            print(f"  Published {len(posts)} posts from {self.url}", file=sys.stderr)

    def _settle(self, attempt: _Attempt, completion: Completion) -> None:
        attempt.settled = True
        if self._collector is not None:
            self._collector.record_fetch_completed(
                self.url,
                "finished" if completion.finished else "failed",
                started_ns=attempt.started_ns,
                error=None if completion.error is None else str(completion.error),
                posts=len(self.posts.value) if completion.finished else 0,
            )
        if self._config.verbose:
            print(f"  completion: {completion}", file=sys.stderr)
        for handler in (self._on_completion, attempt.on_completion):
            if handler is not None:
                handler(completion)

    def _abandon(self, attempt: _Attempt) -> None:
        if attempt.settled:
            return
        attempt.settled = True
        if self._collector is not None:
            self._collector.record_fetch_completed(
                self.url, "cancelled", started_ns=attempt.started_ns,
            )


def _as_exception(exc: BaseException) -> Exception:
    if isinstance(exc, Exception):
        return exc
    msg = f"fetch interrupted: {exc!r}"
    return RuntimeError(msg)
