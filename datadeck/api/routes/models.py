"""Model catalog endpoint."""
from typing import Any

from fastapi import APIRouter

from datadeck.core import get_settings
from datadeck.services.agent.pricing import list_models

router = APIRouter(prefix="/api", tags=["models"])


@router.get("/models")
async def get_models() -> dict[str, Any]:
    """Models available for generation, grouped by runner."""
    settings = get_settings()
    models = list_models(settings)
    return {
        "defaultProvider": settings.default_provider,
        "models": [model.to_dict() for model in models],
        "sdk": [model.id for model in models if model.provider == "sdk"],
        "direct": [model.id for model in models if model.provider == "direct"],
    }
