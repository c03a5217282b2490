# pocket_backend/tools/process_ingest.py
"""Разовый прогон очереди ингеста и (опционально) скоринга транскриптов без оценки.

Запуск по cron:  python -m pocket_backend.tools.process_ingest --limit 200 --score
"""
from __future__ import annotations

import argparse
import json
import logging
from typing import Dict, Optional

from dotenv import load_dotenv

from pocket_backend.app.config import Settings, load_settings
from pocket_backend.app.database import Database
from pocket_backend.app.main import configure_logging
from pocket_backend.app.services.ingest_queue import IngestQueue
from pocket_backend.app.services.scoring_service import OpenAIScoringProvider, ScoringProvider, score_pending

logger = logging.getLogger(__name__)


def main(
    limit: int,
    score: bool,
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    provider: Optional[ScoringProvider] = None,
) -> Dict[str, int]:
    settings = settings or load_settings()
    database = database or Database(settings)

    summary = IngestQueue(database, settings).process_due(limit=limit)

    if score:
        provider = provider or OpenAIScoringProvider(settings)
        summary["scored"] = score_pending(database, provider, limit)
    return summary


if __name__ == "__main__":
    load_dotenv()
    parser = argparse.ArgumentParser(description="Process due ingest events.")
    parser.add_argument("--limit", type=int, default=100)
    parser.add_argument("--score", action="store_true", help="also score transcripts that have no score yet")
    parser.add_argument("--log-level", type=str, default=None)

    args = parser.parse_args()
    app_settings = load_settings()
    configure_logging((args.log_level or app_settings.LOG_LEVEL).upper())
    print(json.dumps(main(args.limit, args.score, settings=app_settings), ensure_ascii=False))
