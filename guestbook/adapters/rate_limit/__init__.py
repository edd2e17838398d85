"""Rate limiting adapters.

This package provides a small abstraction layer so the service can start with
in-memory token buckets and later move to a shared store without changing the
API layer.
"""
