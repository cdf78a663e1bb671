"""
Initialisation du logging applicatif.

Console: texte lisible (ou JSON si LOG_FORMAT=json).
Fichier (optionnel, LOG_FILE_PATH): JSON une-ligne avec rotation par taille.
"""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from config.settings import LoggingConfig
from shared.json_log_formatter import JsonLogFormatter

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(config: LoggingConfig) -> logging.Logger:
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.log_level, logging.INFO))

    # Réinitialisation idempotente (reload uvicorn, tests)
    for handler in list(root.handlers):
        if getattr(handler, "_research_handler", False):
            root.removeHandler(handler)

    console = logging.StreamHandler()
    console.setFormatter(JsonLogFormatter() if config.log_format == "json" else logging.Formatter(TEXT_FORMAT))
    console._research_handler = True
    root.addHandler(console)

    if config.log_file_path:
        config.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_file_path,
            maxBytes=config.log_max_size_mb * 1024 * 1024,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(JsonLogFormatter())
        file_handler._research_handler = True
        root.addHandler(file_handler)

    # httpx logue chaque requête en INFO, URL incluse (api_key en query string)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    return root
