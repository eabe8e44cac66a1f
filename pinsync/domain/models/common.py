"""Defines common Value Objects used across different domain contexts.

These objects represent simple values like endpoint paths, rate-limit bucket
names and tag keys, ensuring consistency and type safety.
"""

from typing import NewType, TypedDict

# === API Context ===
Endpoint = NewType("Endpoint", str)            # API method path, e.g. 'posts/all'
AuthToken = NewType("AuthToken", str)          # Opaque credential attached to every call

# === Rate Limit Context ===
BucketName = NewType("BucketName", str)        # Group of endpoints sharing one timer

# === Bookmark Context ===
BookmarkUrl = NewType("BookmarkUrl", str)      # Unique key of a bookmark
TagKey = NewType("TagKey", str)                # Lowercased tag used for lookups

# Endpoints the sync engine knows by name
FULL_LISTING_ENDPOINT = Endpoint("posts/all")
RECENT_LISTING_ENDPOINT = Endpoint("posts/recent")
UPDATE_TIME_ENDPOINT = Endpoint("posts/update")
ADD_ENDPOINT = Endpoint("posts/add")
DELETE_ENDPOINT = Endpoint("posts/delete")

# Maximum number of records the recent listing will return
RECENT_LISTING_COUNT = 100

# Wire timestamp format, always UTC
WIRE_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class WireBookmark(TypedDict, total=False):
    """One bookmark record as the API serializes it."""
    href: str
    description: str
    extended: str
    tags: str        # space separated
    shared: str      # 'yes' | 'no'
    toread: str      # 'yes' | 'no'
    time: str        # 'YYYY-MM-DDTHH:MM:SSZ'


class BatchResult(TypedDict):
    """Aggregate outcome of a batch of queued writes."""
    succeeded: int
    failed: int
