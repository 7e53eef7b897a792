import hashlib
import json
import time
from pathlib import Path
from typing import Any, Optional

from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)


class CacheManager:
    """File-based cache for slow upstream lookups such as model listings"""

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        # Keys may embed URLs, so hash them into a safe file name
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        return self.cache_dir / f"{digest}.json"

    def get(self, key: str, expiry_seconds: int = 3600) -> Optional[Any]:
        """Get value from cache if not expired"""
        cache_file = self._path_for(key)
        if not cache_file.exists():
            logger.debug(f"Cache miss: {key}")
            return None

        try:
            with open(cache_file, encoding="utf-8") as f:
                data = json.load(f)

            if time.time() - data["timestamp"] > expiry_seconds:
                logger.debug(f"Cache expired: {key}")
                return None

            logger.debug(f"Cache hit: {key}")
            return data["value"]
        except json.JSONDecodeError as e:
            logger.warning(f"Cache read failed for {key}: Invalid JSON - {e}")
            return None
        except OSError as e:
            logger.warning(f"Cache read failed for {key}: File error - {e}")
            return None
        except KeyError as e:
            logger.warning(f"Cache read failed for {key}: Missing field {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        """Set value in cache with current timestamp"""
        cache_file = self._path_for(key)
        data = {"timestamp": time.time(), "key": key, "value": value}
        try:
            with open(cache_file, "w", encoding="utf-8") as f:
                json.dump(data, f)
            logger.debug(f"Cache write successful: {key}")
        except OSError as e:
            logger.warning(f"Cache write failed for {key}: {e}")
        except (TypeError, ValueError) as e:
            logger.warning(f"Cache write failed for {key}: Value not JSON serializable - {e}")

    def invalidate(self, key: str) -> None:
        """Drop a cached entry if present"""
        cache_file = self._path_for(key)
        try:
            cache_file.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Cache invalidate failed for {key}: {e}")
