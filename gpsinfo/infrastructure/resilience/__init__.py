"""API Resilience Implementations.

Contains services for handling per-API-class rate limits, retries with
backoff, and monthly quota accounting.
Bounded Context: API Resilience
"""
