"""Post model and its JSON shape."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Self

from tide._errors import DecodeError

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(frozen=True, slots=True)
class Post:
    """One post from the feed.  Identity is ``id``.

    Attributes:
        user_id: Author id (JSON key ``userId``).
        id: Post id.
        title: Post title.
        body: Post body text.

    """

    user_id: int
    id: int
    title: str
    body: str

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Self:
        """Build a Post from a decoded JSON object.

        Extra keys are ignored.

        Raises:
            DecodeError: If a key is missing or has the wrong JSON type.

        """
        return cls(
            user_id=_field(data, "userId", int),
            id=_field(data, "id", int),
            title=_field(data, "title", str),
            body=_field(data, "body", str),
        )

    def to_mapping(self) -> dict[str, Any]:
        """The JSON object this post was decoded from."""
        return {"userId": self.user_id, "id": self.id, "title": self.title, "body": self.body}


# Server order, replaced wholesale on every successful fetch.
type PostList = tuple[Post, ...]


def _field(data: Mapping[str, Any], key: str, kind: type) -> Any:
    if key not in data:
        msg = f"missing key {key!r}"
        raise DecodeError(msg)
    value = data[key]
    # bool is an int subclass; JSON true/false is not a number.
    if not isinstance(value, kind) or isinstance(value, bool):
        msg = f"key {key!r} must be {kind.__name__}, got {type(value).__name__}"
        raise DecodeError(msg)
    return value
