"""
Construction du catalogue d'APIs à partir des configurations de charts
(format api-cache: id, name, endpoint, method, columns, chartTitle, page,
additionalOptions.filters.timeFilter.options).
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List

from services.rag.catalog import ApiCatalogEntry, classify_column

PAGE_DOMAINS = {
    "dashboard": "overview",
    "network-usage": "overview",
    "market-dynamics": "overview",
    "dex-summary": "dex",
    "volume": "dex",
    "tvl": "dex",
    "traders": "dex",
    "aggregators": "dex",
    "rev-cost-capacity": "rev",
    "rev-issuance-burn": "rev",
    "rev-total-economic-value": "rev",
    "mev-summary": "mev",
    "dex-token-hotspots": "mev",
    "extracted-value-pnl": "mev",
    "stablecoin-usage": "stablecoins",
    "transaction-activity": "stablecoins",
    "liquidity-velocity": "stablecoins",
    "mint-burn": "stablecoins",
    "cexs": "stablecoins",
    "stablecoins-tvl": "stablecoins",
    "compute-units": "compute-units",
    "transaction-bytes": "compute-units",
    "cu-overspending": "compute-units",
    "holders-supply": "wrapped-btc",
    "btc-tvl": "wrapped-btc",
    "transfers": "wrapped-btc",
    "dex-activity": "wrapped-btc",
    "raydium-financials": "raydium",
    "raydium-traction": "raydium",
    "raydium-protocol-token": "raydium",
    "raydium-competetive-landscape": "raydium",
    "test": "test",
}

TIME_FILTER_AGGREGATIONS = [
    ("D", "daily"),
    ("W", "weekly"),
    ("M", "monthly"),
    ("Q", "quarterly"),
    ("Y", "yearly"),
]


def _words(text: str, pattern: str = r"[^\w\s]") -> List[str]:
    return [w for w in re.sub(pattern, " ", text.lower()).split() if len(w) > 2]


def extract_keywords(config: Dict[str, Any]) -> List[str]:
    keywords: List[str] = []

    def add(word: str):
        if word not in keywords:
            keywords.append(word)

    for word in _words(config.get("chartTitle") or ""):
        add(word)
    for word in _words(config.get("name") or ""):
        add(word)
    for column in config.get("columns") or []:
        for word in _words(column.replace("_", " ")):
            add(word)
    if config.get("page"):
        add(config["page"].replace("-", " "))
    return keywords


def domain_for_page(page: str = None) -> str:
    if not page:
        return "overview"
    return PAGE_DOMAINS.get(page, "overview")


def suggest_chart_types(columns: Iterable[str]) -> List[str]:
    types = {classify_column(c) for c in columns}
    has_time = "time" in types
    if has_time and "volume" in types:
        return ["area", "line"]
    if has_time and "count" in types:
        return ["line", "bar"]
    if has_time:
        return ["line"]
    if "volume" in types:
        return ["bar", "area"]
    return ["bar", "line"]


def aggregation_types(config: Dict[str, Any]) -> List[str]:
    options = (((config.get("additionalOptions") or {}).get("filters") or {}).get("timeFilter") or {}).get("options") or []
    return [label for code, label in TIME_FILTER_AGGREGATIONS if code in options]


def build_catalog_entry(config: Dict[str, Any]) -> ApiCatalogEntry:
    domain = domain_for_page(config.get("page"))
    columns = config.get("columns") or []
    description = config.get("chartTitle") or config.get("name") or f"{domain} data endpoint"
    return ApiCatalogEntry(
        id=str(config["id"]),
        domain=domain,
        title=description,
        url=config.get("endpoint") or "",
        method=(config.get("method") or "GET").upper(),
        response_schema={c: classify_column(c) for c in columns},
        keywords=extract_keywords(config),
        description=description,
        aggregation_types=aggregation_types(config),
        chart_types=suggest_chart_types(columns),
    )


def build_catalog(configs: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Catalogue sérialisable {entries, version, last_updated}; configs sans id ignorées."""
    entries = [build_catalog_entry(c) for c in configs if c.get("id")]
    return {
        "entries": [e.model_dump(exclude_none=True) for e in entries],
        "version": "1.0.0",
        "last_updated": datetime.now(timezone.utc).isoformat(),
    }
