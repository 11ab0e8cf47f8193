"""
api/session.py

The server's single provider session: one ClientRegistry built by
POST /configure and shared by every job until it is replaced or stopped.
"""

import logging
import threading
from typing import Optional

from azurerm.config import ClientRegistry

logger = logging.getLogger(__name__)


class Session:
    def __init__(self):
        self._registry: Optional[ClientRegistry] = None
        self._lock = threading.Lock()

    @property
    def registry(self) -> Optional[ClientRegistry]:
        return self._registry

    def configure(self, registry: ClientRegistry) -> None:
        """Install a new registry, closing the one it replaces."""
        with self._lock:
            previous, self._registry = self._registry, registry
        if previous is not None:
            logger.info("Replacing configured session; closing previous clients")
            previous.close()

    def stop(self) -> bool:
        """Cancel every in-flight wait. Returns False if nothing is configured."""
        registry = self._registry
        if registry is None:
            return False
        registry.stop_context.cancel()
        return True

    def reset(self) -> None:
        with self._lock:
            previous, self._registry = self._registry, None
        if previous is not None:
            previous.close()


# Module-level singleton
session = Session()
