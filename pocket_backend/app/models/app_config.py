# pocket_backend/app/models/app_config.py
import uuid

from sqlalchemy import Boolean, Column, DateTime, String, Text, Uuid

from ..database import Base
from .interview_session import utcnow


class AppConfig(Base):
    """Пары ключ/значение для клиентов; публичные отдаются всем авторизованным."""
    __tablename__ = "app_config"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    key_name = Column(String(128), unique=True, nullable=False)
    key_value = Column(Text, nullable=False)
    is_public = Column(Boolean, nullable=False, default=False, index=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
