"""Posts feed — a one-shot fetch -> validate -> decode -> publish pipeline."""

from tide.posts.feed import (
    Completion,
    FetchOutput,
    PostsFeed,
    validate_response,
    validate_url,
)
from tide.posts.models import Post, PostList

__all__ = [
    "Completion",
    "FetchOutput",
    "Post",
    "PostList",
    "PostsFeed",
    "validate_response",
    "validate_url",
]
