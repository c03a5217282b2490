# pocket_backend/app/api/config.py
from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends

from ..schemas import AppConfigUpsert, PublicConfigResponse
from ..services.access_control import ServicePrincipal, UserPrincipal
from ..services.app_config_service import AppConfigService
from .deps import current_user, get_app_config, service_principal

router = APIRouter()


@router.get("/public", response_model=PublicConfigResponse)
def public_config(
    _user: UserPrincipal = Depends(current_user),
    app_config: AppConfigService = Depends(get_app_config),
):
    """Публичные ключи для клиента (версия, фичефлаги, лимиты длительности)."""
    return PublicConfigResponse(configs=app_config.public_configs())


@router.put("/{key_name}")
def upsert_config(
    key_name: str,
    payload: AppConfigUpsert,
    service: ServicePrincipal = Depends(service_principal),
    app_config: AppConfigService = Depends(get_app_config),
) -> Dict[str, object]:
    row = app_config.set(
        key_name,
        payload.key_value,
        service,
        is_public=payload.is_public,
        description=payload.description,
    )
    return {"key_name": row.key_name, "key_value": row.key_value, "is_public": row.is_public}
