# Overview: Local-disk storage for uploaded deal documents.

from __future__ import annotations

import logging
import os
import shutil
import time

from flask import current_app
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)


def _upload_root() -> str:
    return current_app.config["UPLOAD_ROOT"]


def deal_dir(deal_id: int) -> str:
    return os.path.join(_upload_root(), str(deal_id))


def safe_name(name: str | None) -> str:
    s = secure_filename(name or "").strip()
    return s or "upload"


def save_upload(deal_id: int, file) -> str:
    """
    Write an uploaded file to {UPLOAD_ROOT}/{deal_id}/{millis}-{filename}.

    `file` is a werkzeug FileStorage. Returns the absolute storage path.
    """
    folder = deal_dir(deal_id)
    os.makedirs(folder, exist_ok=True)

    dest = os.path.join(folder, f"{int(time.time() * 1000)}-{safe_name(file.filename)}")
    file.save(dest)

    logger.info("Stored upload for deal %s at %s", deal_id, dest)
    return dest


def delete_file(path: str | None) -> None:
    if path and os.path.isfile(path):
        os.remove(path)


def delete_deal_files(deal_id: int) -> None:
    """Remove the deal's upload folder, if any."""
    folder = deal_dir(deal_id)
    if os.path.isdir(folder):
        shutil.rmtree(folder)
        logger.info("Removed upload folder for deal %s", deal_id)
