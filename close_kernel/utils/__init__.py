"""Utility functions for the close kernel."""

from close_kernel.utils.hashing import canonicalize_json, hash_payload, sha256_hex

__all__ = ["canonicalize_json", "hash_payload", "sha256_hex"]
