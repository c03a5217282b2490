# pocket_backend/app/schemas/config.py
from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field


class AppConfigUpsert(BaseModel):
    key_value: str
    is_public: bool = False
    description: Optional[str] = None


class PublicConfigResponse(BaseModel):
    configs: Dict[str, str] = Field(default_factory=dict)
