"""
Cache package for the Cache Service.

Holds the cache record model and its text codec, the error taxonomy, and
the gateway that applies the fixed TTL policy and miss/error semantics on
top of a store adapter.
"""
