# pocket_backend/app/services/app_config_service.py
"""
Таблица ``app_config``: типизированное чтение и запись ключей.

Каждое чтение идёт в базу, поэтому запись через ``set`` сразу видна всем
воркерам.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..database import Database
from ..errors import ValidationError
from ..models import AppConfig
from .access_control import Principal, require_service

logger = logging.getLogger(__name__)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class ConfigEntry:
    value: str
    is_public: bool


class AppConfigService:
    def __init__(self, database: Database):
        self.database = database

    def _entry(self, key: str) -> Optional[ConfigEntry]:
        def work(db: Session) -> Optional[ConfigEntry]:
            row = db.query(AppConfig).filter(AppConfig.key_name == key).first()
            return ConfigEntry(row.key_value, bool(row.is_public)) if row is not None else None

        return self.database.run(work)

    # --- чтение ---

    def public_configs(self) -> Dict[str, str]:
        def work(db: Session) -> Dict[str, str]:
            rows = db.query(AppConfig).filter(AppConfig.is_public.is_(True)).all()
            return {r.key_name: r.key_value for r in rows}

        return self.database.run(work)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        entry = self._entry(key)
        return entry.value if entry is not None else default

    def get_bool(self, key: str, default: bool = False) -> bool:
        raw = self.get(key)
        if raw is None:
            return default
        s = raw.strip().lower()
        if s in _TRUE:
            return True
        if s in _FALSE:
            return False
        raise ValidationError(f"app_config {key}={raw!r} is not a boolean")

    def get_int(self, key: str, default: int = 0) -> int:
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return int(raw.strip())
        except ValueError:
            raise ValidationError(f"app_config {key}={raw!r} is not an integer") from None

    def get_list(self, key: str, default: Optional[List[str]] = None) -> List[str]:
        """JSON-массив (``["en","es"]``) или строка через запятую."""
        raw = self.get(key)
        if raw is None:
            return list(default or [])
        s = raw.strip()
        if s.startswith("["):
            try:
                return [str(x).strip() for x in json.loads(s)]
            except json.JSONDecodeError:
                pass
        return [x.strip() for x in s.split(",") if x.strip()]

    # --- запись ---

    def set(
        self,
        key: str,
        value: str,
        principal: Principal,
        is_public: bool = False,
        description: Optional[str] = None,
    ) -> AppConfig:
        require_service(principal)
        key = (key or "").strip()
        if not key:
            raise ValidationError("key_name must not be empty")

        def work(db: Session) -> AppConfig:
            row = db.query(AppConfig).filter(AppConfig.key_name == key).first()
            now = datetime.now(timezone.utc)
            if row is None:
                row = AppConfig(key_name=key, created_at=now)
                db.add(row)
            row.key_value = value
            row.is_public = is_public
            if description is not None:
                row.description = description
            row.updated_at = now
            db.flush()
            return row

        row = self.database.run(work)
        logger.info(f"app_config {key} updated (public={is_public})")
        return row
