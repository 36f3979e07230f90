# witar/core/storage.py
from __future__ import annotations

import logging
import uuid
from pathlib import Path

from witar.core.config import settings

logger = logging.getLogger(__name__)


def company_dir(company_id: uuid.UUID) -> Path:
    return Path(settings.DOCUMENT_STORAGE_DIR) / str(company_id)


def document_path(company_id: uuid.UUID, storage_name: str) -> Path:
    # storage names are generated server-side; never trust a client path here
    return company_dir(company_id) / Path(storage_name).name


def save_document(company_id: uuid.UUID, storage_name: str, content: bytes) -> Path:
    path = document_path(company_id, storage_name)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def remove_document(company_id: uuid.UUID, storage_name: str) -> None:
    path = document_path(company_id, storage_name)
    try:
        path.unlink()
    except FileNotFoundError:
        logger.warning("Stored file %s was already missing", path)
