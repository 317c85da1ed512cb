"""
Dropit: a password-gated shared clipboard and file drop.

This package provides a FastAPI application with key-value and blob
storage abstractions that fall back to in-memory and local-disk backends
when cloud credentials are absent.
"""
