import platform
import time
from typing import Any, Dict

from golf_leaderboard.config import get_settings
from golf_leaderboard.metrics import BUILD_VERSION, GIT_SHA


async def health() -> Dict[str, Any]:
    settings = get_settings()
    return {
        "status": "ok",
        "version": BUILD_VERSION,
        "git": GIT_SHA,
        "ts": time.time(),
        "env": {
            "data_store": settings.backend,
            "fetch_retries": settings.fetch_retries,
        },
        "runtime": {
            "python": platform.python_version(),
        },
    }
