"""Kernel services: the close document store."""

from close_kernel.services.close_store import CloseStore, SqlCloseStore

__all__ = ["CloseStore", "SqlCloseStore"]
