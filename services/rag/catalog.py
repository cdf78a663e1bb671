"""
Catalogue d'APIs pour la recherche NLP -> chart.

Chaque entrée décrit un endpoint TopLedger (schéma de réponse simplifié,
mots-clés, types de charts suggérés). Le catalogue est chargé une fois au
démarrage puis utilisé en lecture seule.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

API_DOMAINS = [
    "overview",
    "dex",
    "rev",
    "mev",
    "stablecoins",
    "protocol-revenue",
    "sf-dashboards",
    "launchpads",
    "xstocks",
    "compute-units",
    "wrapped-btc",
    "raydium",
    "metaplex",
    "helium",
    "orca",
    "test",
]

# Ordre significatif: le premier type dont un motif est contenu dans le nom gagne
COLUMN_TYPES: Dict[str, List[str]] = {
    "time": ["date", "block_date", "month", "week", "quarter", "year", "partition_0"],
    "volume": ["volume", "transfer_volume", "trading_volume", "swap_volume"],
    "price": ["price", "avg_price", "median_price", "token_price"],
    "count": ["count", "trades", "transactions", "holders", "traders", "users"],
    "percentage": ["pct", "percentage", "ratio", "rate"],
    "supply": ["supply", "circulating_supply", "total_supply", "minted", "burned"],
    "tvl": ["tvl", "total_value_locked", "liquidity"],
    "revenue": ["revenue", "fees", "earnings", "profit"],
    "metric": ["avg_", "median_", "max_", "min_", "sum_", "total_"],
}

# Heuristiques de repli quand aucun motif ne correspond
_DEFAULT_HINTS = [
    ("time", ("time",)),
    ("volume", ("amount", "usd")),
    ("count", ("number",)),
    ("percentage", ("percent",)),
    ("tvl", ("locked",)),
]

METRIC_TYPES = {"volume", "price", "count", "percentage", "supply", "tvl", "revenue", "metric"}

CHART_TYPES = ["line", "bar", "area", "scatter", "stacked_bar", "pie"]


def classify_column(name: str, declared_type: Optional[str] = None) -> str:
    lower = name.lower()
    for column_type, patterns in COLUMN_TYPES.items():
        if any(pattern in lower for pattern in patterns):
            return column_type
    for column_type, hints in _DEFAULT_HINTS:
        if any(hint in lower for hint in hints):
            return column_type
    if declared_type:
        declared = declared_type.lower()
        if declared in COLUMN_TYPES:
            return declared
        if declared in ("date", "datetime", "timestamp"):
            return "time"
        if declared in ("string", "text", "category"):
            return "category"
    return "metric"


class DataQuality(BaseModel):
    """Indicateurs de qualité des données d'un endpoint (valeurs par défaut si absents du catalogue)"""
    completeness: float = Field(default=0.85, ge=0.0, le=1.0)
    accuracy: float = Field(default=0.9, ge=0.0, le=1.0)
    freshness: float = Field(default=0.8, ge=0.0, le=1.0)
    reliability: float = Field(default=0.85, ge=0.0, le=1.0)

    model_config = {"extra": "ignore", "frozen": True}


class ApiCatalogEntry(BaseModel):
    """Descripteur d'un endpoint du catalogue"""
    id: str
    domain: str = "overview"
    title: str
    url: str
    method: str = "GET"
    params: Dict[str, str] = Field(default_factory=dict)
    response_schema: Dict[str, str] = Field(default_factory=dict)
    keywords: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    aggregation_types: List[str] = Field(default_factory=list)
    chart_types: List[str] = Field(default_factory=list)
    sample_response: Optional[str] = None
    data_quality: DataQuality = Field(default_factory=DataQuality)

    model_config = {"extra": "ignore", "frozen": True}

    @property
    def columns(self) -> List[str]:
        return list(self.response_schema.keys())

    def column_type(self, column: str) -> str:
        return classify_column(column, self.response_schema.get(column))

    def time_column(self) -> Optional[str]:
        for column in self.columns:
            if self.column_type(column) == "time":
                return column
        return None

    def metric_columns(self) -> List[str]:
        return [c for c in self.columns if self.column_type(c) in METRIC_TYPES]

    def search_text(self) -> str:
        """Texte indexé (mots-clés, titre, colonnes...), en minuscules."""
        parts = [
            self.title,
            self.description or "",
            self.domain,
            " ".join(self.keywords),
            " ".join(self.columns),
            " ".join(self.aggregation_types),
            " ".join(self.chart_types),
        ]
        return " ".join(p for p in parts if p).lower()

    def summary(self) -> Dict:
        return {
            "id": self.id,
            "title": self.title,
            "domain": self.domain,
            "description": self.description,
            "columns": self.columns,
            "chart_types": self.chart_types,
        }


class ApiCatalog:
    """Catalogue immuable indexé par id."""

    def __init__(self, entries: Optional[List[ApiCatalogEntry]] = None, version: str = "1.0.0"):
        self._entries: Dict[str, ApiCatalogEntry] = {}
        for entry in entries or []:
            if entry.id in self._entries:
                logger.warning(f"Duplicate catalog id {entry.id}, keeping first")
                continue
            self._entries[entry.id] = entry
        self.version = version

    @classmethod
    def load(cls, path: Path) -> "ApiCatalog":
        path = Path(path)
        if not path.exists():
            logger.warning(f"API catalog not found at {path}, starting with an empty catalog")
            return cls([])
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read API catalog {path}: {e}")
            return cls([])
        return cls.from_raw(raw)

    @classmethod
    def from_raw(cls, raw) -> "ApiCatalog":
        version = "1.0.0"
        if isinstance(raw, dict):
            version = raw.get("version", version)
            items = raw.get("entries") or raw.get("apis") or []
        else:
            items = raw or []

        entries = []
        for item in items:
            try:
                entries.append(ApiCatalogEntry.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping invalid catalog entry {item.get('id') if isinstance(item, dict) else item!r}: "
                               f"{e.error_count()} errors")
        logger.info(f"API catalog loaded: {len(entries)} entries (v{version})")
        return cls(entries, version=version)

    def get(self, api_id: str) -> Optional[ApiCatalogEntry]:
        return self._entries.get(api_id)

    def by_domain(self, domain: str) -> List[ApiCatalogEntry]:
        return [e for e in self._entries.values() if e.domain == domain]

    def domains(self) -> List[str]:
        return sorted({e.domain for e in self._entries.values()})

    def ids(self) -> List[str]:
        return list(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ApiCatalogEntry]:
        return iter(self._entries.values())
