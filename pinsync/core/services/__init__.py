"""Application services built on top of the resilience layer."""
