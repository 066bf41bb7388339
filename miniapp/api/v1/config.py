"""
Configuration routes
The persistence endpoint that stores the catalog snapshot
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request

from ...models.catalog import Snapshot
from ...schemas.catalog import ConfigSaveResponse
from ...services.config_repository import ConfigRepository

logger = logging.getLogger(__name__)

router = APIRouter()


def get_repository(request: Request) -> ConfigRepository:
    return request.app.state.config_repository


@router.get("/config")
def get_config(repository: ConfigRepository = Depends(get_repository)) -> Dict[str, Any]:
    """Stored snapshot, 404 when nothing has been stored yet"""
    return repository.read()


@router.post("/config", response_model=ConfigSaveResponse)
def save_config(
    payload: Any = Body(...),
    repository: ConfigRepository = Depends(get_repository),
):
    """Validate and store a whole snapshot"""
    snapshot = Snapshot.from_wire(payload)
    repository.write(snapshot)
    logger.info(
        "Configuration saved: %d categories, %d products",
        len(snapshot.categories),
        sum(1 for _ in snapshot.iter_products()),
    )
    return ConfigSaveResponse(success=True, persisted=True, message="Configuration saved")
