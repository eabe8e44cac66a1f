"""pinsync: a rate-limit aware bookmark synchronization client."""

__version__ = "0.1.0"
