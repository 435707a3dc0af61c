"""
Versioned AI configuration snapshots.

Each update inserts a new row; the newest row is the current configuration.
Nothing is ever modified in place.
"""

import json
import logging
from typing import Optional

from settings import AIConfig
from storage.db import db_conn

logger = logging.getLogger(__name__)


def save_ai_config(config: AIConfig) -> int:
    with db_conn() as conn:
        cur = conn.execute(
            "INSERT INTO ai_config (config) VALUES (?)",
            (json.dumps(config.to_dict()),),
        )
        version = cur.lastrowid
    logger.info("Stored AI configuration snapshot v%d", version)
    return version


def get_current_ai_config(default: Optional[AIConfig] = None) -> AIConfig:
    """Newest stored snapshot, or `default` (file configuration) if none stored."""
    with db_conn() as conn:
        row = conn.execute(
            "SELECT config FROM ai_config ORDER BY id DESC LIMIT 1"
        ).fetchone()
    if row:
        return AIConfig.from_dict(json.loads(row["config"]))
    return default if default is not None else AIConfig.from_dict()
