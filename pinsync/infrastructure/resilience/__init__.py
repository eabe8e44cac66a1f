"""API Resilience Implementations.

Contains the per-endpoint rate limiter with exponential backoff, the
single-flight request executor and the ordered work queue for batched
mutations.
Bounded Context: API Resilience
"""
