"""Tide configuration.

TideConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass

from tide._errors import ConfigError

DEFAULT_POSTS_URL = "https://jsonplaceholder.typicode.com/posts"


@dataclass(frozen=True, slots=True)
class TideConfig:
    """Configuration for the tide pipelines.

    Time values are in seconds on whatever scheduler drives the pipeline,
    so a virtual scheduler reads them as plain time units.

    Attributes:
        posts_url: Location of the JSON array of posts.
        request_timeout: Timeout for the posts request, in seconds.
        user_agent: User-Agent header sent with the posts request.
        tick_interval: Period of the counter timer.
        debounce_delay: Quiet period before text validity is recomputed.
        min_text_length: Text is valid when strictly longer than this.
        gate_threshold: Counter value at which the button may open.
        verbose: Print pipeline log lines to stderr.
        max_events: Capacity of the observability event log.

    """

    posts_url: str = DEFAULT_POSTS_URL
    request_timeout: float = 30.0
    user_agent: str = "tide/0.1"
    tick_interval: float = 1.0
    debounce_delay: float = 0.5
    min_text_length: int = 3
    gate_threshold: int = 10
    verbose: bool = False
    max_events: int = 10_000

    def __post_init__(self) -> None:
        for name in ("posts_url", "user_agent"):
            _require(name, getattr(self, name), str, "a string")
        _require("verbose", self.verbose, bool, "true or false")
        for name in ("request_timeout", "tick_interval", "debounce_delay"):
            _require(name, getattr(self, name), (int, float), "a number")
            if getattr(self, name) <= 0:
                msg = f"{name} must be positive, got {getattr(self, name)!r}"
                raise ConfigError(msg)
        for name in ("min_text_length", "gate_threshold", "max_events"):
            _require(name, getattr(self, name), int, "an integer")
        for name in ("min_text_length", "gate_threshold"):
            if getattr(self, name) < 0:
                msg = f"{name} must not be negative, got {getattr(self, name)!r}"
                raise ConfigError(msg)
        if self.max_events < 1:
            msg = f"max_events must be at least 1, got {self.max_events!r}"
            raise ConfigError(msg)


def _require(name: str, value: object, kind: type | tuple[type, ...], expected: str) -> None:
    # bool is an int subclass; only the verbose flag may be one.
    if isinstance(value, bool) and kind is not bool:
        ok = False
    else:
        ok = isinstance(value, kind)
    if not ok:
        msg = f"{name} must be {expected}, got {value!r}"
        raise ConfigError(msg)
