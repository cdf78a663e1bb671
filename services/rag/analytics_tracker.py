"""
Télémétrie des requêtes NLP -> chart.

Journal JSONL append-only; les agrégats (taux de cache, domaines, erreurs,
distribution horaire) sont calculés à la demande avec pandas.
"""
from __future__ import annotations

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from api.exceptions import ValidationException
from shared.json_store import file_lock

logger = logging.getLogger(__name__)

FEEDBACK_VALUES = ("positive", "negative", "neutral")

# Colonnes du journal et valeurs par défaut
RECORD_DEFAULTS: Dict[str, Any] = {
    "id": None,
    "timestamp": 0.0,
    "original_query": "",
    "normalized_query": "",
    "selected_apis": (),
    "chart_type": None,
    "confidence": 0.0,
    "processing_time_ms": 0.0,
    "cache_hit": False,
    "success": False,
    "error_message": None,
    "user_feedback": None,
    "session_id": None,
    "user_agent": None,
}


def categorize_error(message: str) -> str:
    text = (message or "").lower()
    if "quota" in text or "rate limit" in text:
        return "quota_exceeded"
    if "api" in text or "request" in text:
        return "api_error"
    if "parse" in text or "json" in text:
        return "parsing_error"
    if "cache" in text:
        return "cache_error"
    if "vector" in text or "embedding" in text:
        return "vector_error"
    return "unknown_error"


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


class AnalyticsTracker:

    def __init__(self, path: Path, clock: Callable[[], float] = time.time):
        self.path = Path(path)
        self._clock = clock

    # ---------------------------------------------------------------- écriture

    def log_query(self, record: Dict[str, Any]) -> Optional[str]:
        """Ajoute une ligne au journal; ne lève jamais (échec loggé, None retourné)."""
        entry = {
            **record,
            "id": uuid.uuid4().hex[:16],
            "timestamp": self._clock(),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            line = json.dumps(entry, ensure_ascii=False, default=str)
            with file_lock(self.path):
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to log query analytics: {e}")
            return None
        return entry["id"]

    def _read_records(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        records = []
        with file_lock(self.path):
            with open(self.path, "r", encoding="utf-8") as f:
                lines = f.readlines()
        for n, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError:
                logger.warning(f"Skipping malformed analytics line {n} in {self.path}")
        return records

    def _write_records(self, records: List[Dict[str, Any]]):
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with file_lock(self.path):
            with open(tmp, "w", encoding="utf-8") as f:
                for record in records:
                    f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
            tmp.replace(self.path)

    def update_query_feedback(self, query_id: str, feedback: str) -> bool:
        if feedback not in FEEDBACK_VALUES:
            raise ValidationException("feedback", f"must be one of {', '.join(FEEDBACK_VALUES)}", feedback)
        records = self._read_records()
        found = False
        for record in records:
            if record.get("id") == query_id:
                record["user_feedback"] = feedback
                found = True
        if found:
            self._write_records(records)
        return found

    def cleanup_old_logs(self, days_to_keep: int = 30) -> int:
        cutoff = self._clock() - days_to_keep * 86400
        records = self._read_records()
        kept = [r for r in records if float(r.get("timestamp") or 0) >= cutoff]
        removed = len(records) - len(kept)
        if removed:
            self._write_records(kept)
            logger.info(f"Analytics cleanup: {removed} records older than {days_to_keep} days removed")
        return removed

    # ---------------------------------------------------------------- lecture

    def _frame(self, since: Optional[float] = None) -> pd.DataFrame:
        rows = []
        for record in self._read_records():
            row = {**RECORD_DEFAULTS, **record}
            row["selected_apis"] = list(row.get("selected_apis") or [])
            rows.append(row)
        df = pd.DataFrame(rows, columns=list(RECORD_DEFAULTS))
        if df.empty:
            return df
        df["timestamp"] = pd.to_numeric(df["timestamp"], errors="coerce").fillna(0.0)
        df["confidence"] = pd.to_numeric(df["confidence"], errors="coerce").fillna(0.0)
        df["processing_time_ms"] = pd.to_numeric(df["processing_time_ms"], errors="coerce").fillna(0.0)
        df["cache_hit"] = df["cache_hit"].fillna(False).astype(bool)
        df["success"] = df["success"].fillna(False).astype(bool)
        if since is not None:
            df = df[df["timestamp"] >= since]
        return df

    def get_system_metrics(self, since: Optional[float] = None) -> Dict[str, Any]:
        return self._system_metrics(self._frame(since))

    @staticmethod
    def _system_metrics(df: pd.DataFrame) -> Dict[str, Any]:
        if df.empty:
            return {
                "total_queries": 0,
                "unique_queries": 0,
                "cache_hit_rate": 0.0,
                "avg_processing_time": 0.0,
                "success_rate": 0.0,
                "popular_domains": {},
                "error_types": {},
                "time_distribution": {},
            }

        apis = df["selected_apis"].explode().dropna().astype(str)
        domains = apis.str.split("-").str[0].replace("", "unknown").value_counts()

        failed = df[~df["success"] & df["error_message"].notna()]
        failed = failed[failed["error_message"].astype(str) != ""]
        errors = failed["error_message"].astype(str).map(categorize_error).value_counts()

        hours = pd.to_datetime(df["timestamp"], unit="s", utc=True).dt.strftime("%H:00").value_counts()

        return {
            "total_queries": int(len(df)),
            "unique_queries": int(df["normalized_query"].nunique()),
            "cache_hit_rate": round(float(df["cache_hit"].mean()), 4),
            "avg_processing_time": round(float(df["processing_time_ms"].mean()), 2),
            "success_rate": round(float(df["success"].mean()), 4),
            "popular_domains": {k: int(v) for k, v in domains.items()},
            "error_types": {k: int(v) for k, v in errors.items()},
            "time_distribution": {k: int(v) for k, v in sorted(hours.items())},
        }

    def get_api_usage_stats(self, since: Optional[float] = None) -> List[Dict[str, Any]]:
        return self._api_usage_stats(self._frame(since))

    @staticmethod
    def _api_usage_stats(df: pd.DataFrame) -> List[Dict[str, Any]]:
        if df.empty:
            return []
        exploded = df[["selected_apis", "success", "confidence", "timestamp"]].explode("selected_apis")
        exploded = exploded.dropna(subset=["selected_apis"])
        if exploded.empty:
            return []
        exploded["success"] = exploded["success"].astype(float)

        grouped = exploded.groupby("selected_apis").agg(
            usage_count=("success", "size"),
            success_rate=("success", "mean"),
            avg_confidence=("confidence", "mean"),
            last_used=("timestamp", "max"),
        ).sort_values("usage_count", ascending=False, kind="stable")

        return [
            {
                "api_id": str(api_id),
                "usage_count": int(row["usage_count"]),
                "success_rate": round(float(row["success_rate"]), 4),
                "avg_confidence": round(float(row["avg_confidence"]), 4),
                "last_used": _iso(float(row["last_used"])),
            }
            for api_id, row in grouped.iterrows()
        ]

    def get_popular_queries(self, limit: int = 20, since: Optional[float] = None) -> List[Dict[str, Any]]:
        return self._popular_queries(self._frame(since), limit)

    @staticmethod
    def _popular_queries(df: pd.DataFrame, limit: int) -> List[Dict[str, Any]]:
        if df.empty:
            return []
        grouped = df.groupby("normalized_query").agg(
            query=("original_query", "first"),
            count=("original_query", "size"),
            avg_confidence=("confidence", "mean"),
            success_rate=("success", "mean"),
            avg_processing_time=("processing_time_ms", "mean"),
        ).sort_values("count", ascending=False, kind="stable").head(limit)

        return [
            {
                "query": row["query"],
                "normalized_query": normalized,
                "count": int(row["count"]),
                "avg_confidence": round(float(row["avg_confidence"]), 4),
                "success_rate": round(float(row["success_rate"]), 4),
                "avg_processing_time": round(float(row["avg_processing_time"]), 2),
            }
            for normalized, row in grouped.iterrows()
        ]

    def get_improvement_suggestions(self, since: Optional[float] = None) -> List[str]:
        df = self._frame(since)
        return self._suggestions(self._system_metrics(df), self._api_usage_stats(df))

    @staticmethod
    def _suggestions(metrics: Dict[str, Any], api_stats: List[Dict[str, Any]]) -> List[str]:
        suggestions = []
        total = metrics["total_queries"]
        if total == 0:
            return suggestions

        if metrics["cache_hit_rate"] < 0.3:
            suggestions.append("Low cache hit rate detected. Consider improving query normalization or increasing cache TTL.")
        if metrics["success_rate"] < 0.9:
            suggestions.append("Success rate below 90%. Review failed queries to improve API selection or chart spec generation.")
        if metrics["avg_processing_time"] > 2000:
            suggestions.append("Average processing time is high. Consider optimizing vector search.")

        underutilized = [a for a in api_stats if a["usage_count"] < 5 and a["success_rate"] > 0.8]
        if len(underutilized) > 10:
            suggestions.append(
                f"{len(underutilized)} high-quality APIs are underutilized. Consider improving their keywords or descriptions."
            )

        top_errors = sorted(metrics["error_types"].items(), key=lambda kv: kv[1], reverse=True)[:3]
        for error_type, count in top_errors:
            if count > total * 0.05:
                suggestions.append(
                    f"Frequent {error_type} errors detected. This error type represents {round(count / total * 100)}% of queries."
                )
        return suggestions

    def generate_report(self, days: int = 7) -> Dict[str, Any]:
        end = self._clock()
        start = end - days * 86400
        df = self._frame(since=start)
        metrics = self._system_metrics(df)
        api_stats = self._api_usage_stats(df)
        return {
            "summary": metrics,
            "top_apis": api_stats[:10],
            "popular_queries": self._popular_queries(df, 10),
            "suggestions": self._suggestions(metrics, api_stats),
            "time_range": {"start": _iso(start), "end": _iso(end), "days": days},
        }
