"""
Persistance JSON: écriture atomique (tempfile + os.replace) sous FileLock.
"""
from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from filelock import FileLock

LOCK_TIMEOUT_SEC = 5


def file_lock(path: Path | str) -> FileLock:
    return FileLock(str(path) + ".lock", timeout=LOCK_TIMEOUT_SEC)


def atomic_json_dump(data: Any, path: Path | str, indent: int | None = 2) -> None:
    """
    Écriture atomique d'un fichier JSON pour éviter corruption.

    Args:
        data: Données sérialisables
        path: Chemin du fichier cible (dossiers parents créés si besoin)
        indent: Indentation (None = compact)
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with file_lock(path):
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=str(path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=indent, ensure_ascii=False, default=str)
            os.replace(tmp_path, path)
        except (OSError, ValueError, TypeError):
            if os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass
            raise


def read_json(path: Path | str) -> Any:
    """Lecture sous verrou; FileNotFoundError / json.JSONDecodeError propagées."""
    path = Path(path)
    with file_lock(path):
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
