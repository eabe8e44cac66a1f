"""Snapshot Storage Implementation.

Provides the file-based SnapshotStore used for offline and fast startup.
Bounded Context: Cache Management
"""
