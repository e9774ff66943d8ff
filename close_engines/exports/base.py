"""Rendered export payload shared by the export generators."""

from __future__ import annotations

from dataclasses import dataclass

from close_kernel.utils.hashing import sha256_hex


@dataclass(frozen=True, slots=True)
class RenderedExport:
    filename: str
    content_type: str
    content: bytes
    row_count: int | None = None

    @property
    def content_hash(self) -> str:
        return sha256_hex(self.content)
