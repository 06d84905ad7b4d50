from datetime import datetime, timezone
from typing import Optional

from fastapi import Response

APP_VERSION = "1.0.0"


def add_cache_headers(response: Response, no_cache: bool = False, max_age: Optional[int] = None) -> Response:
    """Stamp caching and version headers on an outgoing response."""
    if no_cache:
        response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"
    elif max_age:
        response.headers["Cache-Control"] = f"public, max-age={max_age}"
    else:
        response.headers["Cache-Control"] = "no-cache, must-revalidate"

    response.headers["X-App-Version"] = APP_VERSION
    response.headers["X-Timestamp"] = datetime.now(timezone.utc).isoformat()
    return response
