"""Rate limiting adapters.

A fixed-window limiter that keeps its counters in a key-value store with
per-key TTL. The in-memory store serves a single process; a shared store
(e.g. Redis) can be plugged in behind the same interface.
"""
