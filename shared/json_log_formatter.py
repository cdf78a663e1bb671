"""
JSON Log Formatter: logs structurés pour les fichiers.

Une ligne = un objet JSON: ts, level, logger, msg, request_id (si une requête
HTTP est en cours) et exception (type, message, traceback).
La console reste en texte lisible, sauf LOG_FORMAT=json.
"""
from __future__ import annotations

import json
import logging
import traceback


class JsonLogFormatter(logging.Formatter):
    """Formatter JSON une-ligne pour agrégateurs de logs."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": round(record.created, 3),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        # Import tardif: le middleware importe config, qui ne doit pas dépendre du logging
        from api.middlewares.timing import request_id_var
        rid = request_id_var.get("")
        if rid:
            entry["request_id"] = rid

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "msg": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(entry, ensure_ascii=False, default=str)
