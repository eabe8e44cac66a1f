"""Domain models: bookmarks, tag counts and queued work items."""
