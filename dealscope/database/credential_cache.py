import logging
import os
import threading
import time
from typing import Callable, Dict, Optional, Tuple

from ..config import CREDENTIAL_CACHE_TTL_SECONDS

logger = logging.getLogger(__name__)


def env_loader(name: str) -> Optional[str]:
    return os.getenv(name)


class CredentialCache:
    """
    Time-bounded cache in front of a credential source.

    Values are reloaded once older than ``ttl_seconds``; ``invalidate`` drops
    one name or everything so rotated secrets are picked up immediately.
    """

    def __init__(
        self,
        loader: Callable[[str], Optional[str]] = env_loader,
        ttl_seconds: float = CREDENTIAL_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._values: Dict[str, Tuple[Optional[str], float]] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> Optional[str]:
        with self._lock:
            cached = self._values.get(name)
            now = self.clock()
            if cached is not None and now - cached[1] < self.ttl_seconds:
                return cached[0]
            value = self.loader(name)
            self._values[name] = (value, now)
            logger.debug("Loaded credential %s", name)
            return value

    def invalidate(self, name: Optional[str] = None) -> None:
        with self._lock:
            if name is None:
                self._values.clear()
            else:
                self._values.pop(name, None)
