"""
Export CSV des données de charts.
"""
from __future__ import annotations

import csv
import io
import re
from datetime import date
from typing import Any, Dict, Iterable, List, Optional


def rows_to_csv(rows: Iterable[Dict[str, Any]], columns: Optional[List[str]] = None) -> str:
    """CSV avec en-tête; colonnes = union des clés dans l'ordre d'apparition si non fournies."""
    rows = list(rows)
    if not rows:
        return ""

    if columns is None:
        columns = []
        for row in rows:
            for key in row:
                if key not in columns:
                    columns.append(key)

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=columns, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({col: "" if row.get(col) is None else row.get(col) for col in columns})
    return output.getvalue()


def csv_filename(title: str, today: Optional[date] = None) -> str:
    """'DEX Volume (W)' -> 'dex_volume_w_2024-05-01.csv'"""
    slug = re.sub(r"[^a-z0-9]+", "_", (title or "chart").lower()).strip("_") or "chart"
    return f"{slug}_{(today or date.today()).isoformat()}.csv"
