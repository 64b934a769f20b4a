"""Uploaded file type shared by request decoding and outbound email."""

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Attachment:
    """A file that arrived in a multipart form field."""

    field: str
    filename: str
    content_type: str
    data: bytes

    @property
    def extension(self) -> str:
        """Original file extension including the dot ("" if none)."""
        return os.path.splitext(self.filename)[1].lower()

    @property
    def size(self) -> int:
        return len(self.data)
