"""Caching Service Implementation.

Provides the in-memory, TTL-based speed limit cache keyed by spatial bucket.
Bounded Context: Cache Management
"""
