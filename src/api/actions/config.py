from fastapi import APIRouter
from pydantic import BaseModel

from core.config import Settings, get_settings
from schemas.cadence import CadenceConfig

router = APIRouter()


class ConfigResponse(BaseModel):
    settings: Settings
    cadence: CadenceConfig


@router.get("/config", response_model=ConfigResponse, tags=["System"])
async def get_configuration():
    """Runtime settings and the cadence policy derived from them."""
    settings = get_settings()
    return ConfigResponse(settings=settings, cadence=settings.cadence_config())
