# pocket_backend/app/api/admin.py
from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends, Query

from ..services.ingest_queue import IngestQueue
from .deps import get_ingest_queue, service_principal

router = APIRouter(tags=["Admin"])


@router.post("/ingest/process", dependencies=[Depends(service_principal)])
def process_ingest(
    limit: int = Query(default=100, ge=1, le=1000),
    queue: IngestQueue = Depends(get_ingest_queue),
) -> Dict[str, int]:
    """Повторная обработка отложенных событий, у которых подошло время."""
    return queue.process_due(limit=limit)
