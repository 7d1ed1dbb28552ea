"""Preview references for captured images.

A preview reference is a short-lived handle (``preview:<id>``) that lets a
UI render a captured image before it is submitted or discarded. References
hold the payload alive until revoked, so every holder must revoke the
reference it created once the image is superseded.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from log_config.logger import get_logger

logger = get_logger(__name__)

SCHEME = "preview"


@dataclass(frozen=True)
class PreviewEntry:
    payload: bytes
    mime_type: str


class PreviewRegistry:
    """Thread-safe store of live preview references."""

    def __init__(self) -> None:
        self._entries: Dict[str, PreviewEntry] = {}
        self._lock = threading.Lock()
        self.created_count = 0
        self.revoked_count = 0

    def create(self, payload: bytes, mime_type: str) -> str:
        """Register ``payload`` and return its preview reference."""
        url = f"{SCHEME}:{uuid.uuid4().hex}"
        with self._lock:
            self._entries[url] = PreviewEntry(payload=payload, mime_type=mime_type)
            self.created_count += 1
        logger.debug(f"Created preview reference {url} ({len(payload)} bytes)")
        return url

    def resolve(self, url: str) -> Optional[PreviewEntry]:
        with self._lock:
            return self._entries.get(url)

    def revoke(self, url: Optional[str]) -> bool:
        """Release a preview reference. Idempotent.

        Returns:
            True if the reference was live
        """
        if url is None:
            return False
        with self._lock:
            entry = self._entries.pop(url, None)
            if entry is not None:
                self.revoked_count += 1
        if entry is None:
            return False
        logger.debug(f"Revoked preview reference {url}")
        return True

    def revoke_all(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self.revoked_count += count
        return count

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._entries

    def __len__(self) -> int:
        return self.active_count
