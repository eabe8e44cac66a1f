"""Domain models for bookmarks and tag counts.

Includes the immutable `Bookmark` entity, its wire conversion and the
`TagIndex` aggregate that counts bookmarks per tag.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pinsync.domain.errors import DecodeError
from pinsync.domain.models.common import BookmarkUrl, TagKey, WireBookmark


def tag_key(tag: str) -> TagKey:
    """Returns the case-insensitive lookup key for a tag."""
    return TagKey(tag.lower())


def _parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "yes"


def _format_flag(value: bool) -> str:
    return "yes" if value else "no"


@dataclass(frozen=True)
class Bookmark:
    """Entity representing one bookmark, keyed by its URL.

    Instances are immutable. Edits build a modified copy that replaces the
    stored value once the server has confirmed the write.
    """
    url: BookmarkUrl
    title: str = ""
    annotation: str = ""
    tags: Tuple[str, ...] = field(default_factory=tuple)
    shared: bool = False
    unread: bool = False
    time: str = ""

    @classmethod
    def from_wire(cls, record: Mapping[str, Any]) -> "Bookmark":
        """Builds a Bookmark from one decoded API record.

        Raises:
            DecodeError: If the record is not a mapping or has no URL.
        """
        if not isinstance(record, Mapping):
            raise DecodeError(f"Bookmark record is not an object: {record!r}")
        url = record.get("href")
        if not url:
            raise DecodeError(f"Bookmark record has no href: {record!r}")
        raw_tags = record.get("tags") or ""
        tags: List[str] = []
        seen = set()
        for tag in str(raw_tags).split():
            key = tag_key(tag)
            if key not in seen:
                seen.add(key)
                tags.append(tag)
        return cls(
            url=BookmarkUrl(str(url)),
            title=str(record.get("description") or ""),
            annotation=str(record.get("extended") or ""),
            tags=tuple(tags),
            shared=_parse_flag(record.get("shared", "no")),
            unread=_parse_flag(record.get("toread", "no")),
            time=str(record.get("time") or ""),
        )

    def to_wire(self) -> WireBookmark:
        """Serializes the bookmark into the API record shape."""
        return WireBookmark(
            href=self.url,
            description=self.title,
            extended=self.annotation,
            tags=" ".join(self.tags),
            shared=_format_flag(self.shared),
            toread=_format_flag(self.unread),
            time=self.time,
        )

    def to_add_params(self) -> Dict[str, str]:
        """Parameters for an `add` call that overwrites this bookmark."""
        params = {
            "url": self.url,
            "description": self.title,
            "extended": self.annotation,
            "tags": " ".join(self.tags),
            "shared": _format_flag(self.shared),
            "toread": _format_flag(self.unread),
            "replace": "yes",
        }
        if self.time:
            params["dt"] = self.time
        return params

    def has_tag(self, tag: str) -> bool:
        key = tag_key(tag)
        return any(tag_key(t) == key for t in self.tags)

    def with_tags_added(self, tags: Iterable[str]) -> "Bookmark":
        new_tags = list(self.tags)
        keys = {tag_key(t) for t in new_tags}
        for tag in tags:
            if tag_key(tag) not in keys:
                keys.add(tag_key(tag))
                new_tags.append(tag)
        return replace(self, tags=tuple(new_tags))

    def with_tags_removed(self, tags: Iterable[str]) -> "Bookmark":
        drop = {tag_key(t) for t in tags}
        return replace(self, tags=tuple(t for t in self.tags if tag_key(t) not in drop))

    def with_unread(self, unread: bool) -> "Bookmark":
        return replace(self, unread=unread)

    def with_shared(self, shared: bool) -> "Bookmark":
        return replace(self, shared=shared)


class TagIndex:
    """Counts bookmarks per tag, case-insensitively.

    Keys are lowercased; the display name keeps the original case of the
    first occurrence seen during a rebuild.
    """

    def __init__(self) -> None:
        self._counts: Dict[TagKey, int] = {}
        self._display: Dict[TagKey, str] = {}

    @classmethod
    def from_bookmarks(cls, bookmarks: Iterable[Bookmark]) -> "TagIndex":
        index = cls()
        index.rebuild(bookmarks)
        return index

    def rebuild(self, bookmarks: Iterable[Bookmark]) -> None:
        """Discards all counts and recomputes them from `bookmarks`."""
        self._counts = {}
        self._display = {}
        for bookmark in bookmarks:
            # Bookmark.from_wire already dedupes, but constructed instances may not
            for key, tag in {tag_key(t): t for t in reversed(bookmark.tags)}.items():
                self._counts[key] = self._counts.get(key, 0) + 1
                self._display.setdefault(key, tag)

    def clear(self) -> None:
        self._counts.clear()
        self._display.clear()

    def count(self, tag: str) -> int:
        return self._counts.get(tag_key(tag), 0)

    def display_name(self, tag: str) -> Optional[str]:
        return self._display.get(tag_key(tag))

    def items(self) -> List[Tuple[str, int]]:
        """Returns (display name, count) pairs sorted case-insensitively."""
        return [(self._display[key], self._counts[key]) for key in sorted(self._counts)]

    def __contains__(self, tag: object) -> bool:
        return isinstance(tag, str) and tag_key(tag) in self._counts

    def __len__(self) -> int:
        return len(self._counts)
