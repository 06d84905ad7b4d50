import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from runner_checkin.cache_utils import add_cache_headers
from runner_checkin.storage import R2Storage, StorageError, get_storage

logger = logging.getLogger("runner_checkin.images")

router = APIRouter(prefix="/api/images", tags=["Images"])

ONE_YEAR = 31536000


# Endpoint: GET /api/images/{key}
# Description: Streams a stored photo or signature. Unauthenticated.
@router.get("/{key:path}")
def get_image(key: str, storage: R2Storage = Depends(get_storage)):
    logger.debug(f"Image requested: {key}")
    try:
        stored = storage.get_object(key)
    except StorageError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if stored is None:
        logger.info(f"Image not found: {key}")
        raise HTTPException(status_code=404, detail="Image not found")

    response = Response(content=stored.body, media_type=stored.content_type or "image/jpeg")
    response.headers["Access-Control-Allow-Origin"] = "*"
    return add_cache_headers(response, max_age=ONE_YEAR)
