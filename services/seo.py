"""
SEO: sitemap.xml, robots.txt et métadonnées des pages de partage de charts.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from xml.sax.saxutils import escape

logger = logging.getLogger(__name__)

BRAND_SUFFIX = " - State of Solana"

STATIC_PAGES = [
    ("/", "daily", "1.0"),
    ("/blogs", "daily", "0.8"),
    ("/admin", "monthly", "0.3"),
]

DYNAMIC_PAGES = [
    "/overview", "/overview/dashboard", "/overview/market-dynamics",
    "/overview/network-usage", "/overview/protocol-rev",
    "/dex", "/dex/summary", "/dex/aggregators", "/dex/traders", "/dex/tvl", "/dex/volume",
    "/protocol-revenue", "/protocol-revenue/summary", "/protocol-revenue/total",
    "/protocol-revenue/depin", "/protocol-revenue/dex-ecosystem", "/protocol-revenue/nft-ecosystem",
    "/stablecoins", "/stablecoins/cexs", "/stablecoins/liquidity-velocity", "/stablecoins/mint-burn",
    "/stablecoins/stablecoin-usage", "/stablecoins/transaction-activity", "/stablecoins/tvl",
    "/rev", "/rev/cost-capacity", "/rev/issuance-burn", "/rev/total-economic-value",
    "/mev", "/mev/summary", "/mev/dex-token-hotspots", "/mev/extracted-value-pnl",
    "/compute-units", "/compute-units/compute-units", "/compute-units/cu-overspending",
    "/compute-units/transaction-bytes",
    "/wrapped-btc", "/wrapped-btc/btc-tvl", "/wrapped-btc/dex-activity",
    "/wrapped-btc/holders-supply", "/wrapped-btc/transfers",
    "/launchpads", "/launchpads/bonding-curve-trade-stats", "/launchpads/fee-revenue",
    "/launchpads/post-migration-trade-stats", "/launchpads/token-launches",
    "/xstocks", "/xstocks/fee-revenue", "/xstocks/traction", "/xstocks/tvl",
    "/projects/helium", "/projects/metaplex", "/projects/orca", "/projects/raydium",
]

# Premier motif contenu dans le titre -> description
DESCRIPTION_PATTERNS = [
    ("tvl", "total value locked trends and insights"),
    ("volume", "trading volume analytics and trends"),
    ("revenue", "revenue analytics and financial metrics"),
    ("tps", "network throughput and transaction performance"),
    ("fee", "fee analysis and revenue tracking"),
    ("user", "user adoption and growth metrics"),
    ("wallet", "user adoption and growth metrics"),
    ("stablecoin", "stablecoin supply and usage metrics"),
    ("mev", "MEV extraction and arbitrage analytics"),
    ("transactions", "transaction volume and network activity"),
    ("dex", "decentralized exchange trading metrics"),
    ("token", "token economics and price analysis"),
    ("liquidity", "liquidity pool analytics"),
    ("economic", "economic indicators and network health"),
]
GENERIC_DESCRIPTION = "real-time analytics and insights"

BASE_KEYWORDS = ["Solana", "analytics", "charts", "blockchain", "DeFi"]


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit - 3] + "..."


def build_sitemap(
    base_url: str,
    dynamic_pages: Iterable[str] = DYNAMIC_PAGES,
    chart_ids: Iterable[str] = (),
    now: Optional[datetime] = None,
) -> str:
    base_url = base_url.rstrip("/")
    lastmod = (now or datetime.now(timezone.utc)).date().isoformat()

    urls = list(STATIC_PAGES)
    urls += [(page, "daily", "0.7") for page in dynamic_pages]
    urls += [(f"/share/chart/{chart_id}", "weekly", "0.6") for chart_id in chart_ids]

    entries = "\n".join(
        "  <url>\n"
        f"    <loc>{escape(base_url + path)}</loc>\n"
        f"    <lastmod>{lastmod}</lastmod>\n"
        f"    <changefreq>{freq}</changefreq>\n"
        f"    <priority>{priority}</priority>\n"
        "  </url>"
        for path, freq, priority in urls
    )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{entries}\n"
        "</urlset>\n"
    )


def build_robots(base_url: str) -> str:
    base_url = base_url.rstrip("/")
    return (
        "User-agent: *\n"
        "Allow: /\n"
        "Allow: /share/chart/*\n"
        "Disallow: /admin/\n"
        "Disallow: /api/\n"
        "Crawl-delay: 1\n"
        "\n"
        f"Sitemap: {base_url}/sitemap.xml\n"
    )


def _read_chart_configs(configs_dir: Path) -> List[Dict]:
    """Charts (`charts[]`) de tous les fichiers *.json du dossier; fichiers illisibles ignorés."""
    configs_dir = Path(configs_dir)
    if not configs_dir.is_dir():
        logger.warning(f"Chart configs directory not found: {configs_dir}")
        return []

    charts = []
    for path in sorted(configs_dir.glob("*.json")):
        try:
            config = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Skipping chart config {path.name}: {e}")
            continue
        items = config.get("charts") if isinstance(config, dict) else None
        if isinstance(items, list):
            charts.extend(c for c in items if isinstance(c, dict))
    return charts


def collect_chart_ids(configs_dir: Path) -> List[str]:
    return [str(c["id"]) for c in _read_chart_configs(configs_dir) if c.get("id")]


def _description(title: str, subtitle: Optional[str]) -> str:
    if subtitle and subtitle.strip():
        return _truncate(subtitle.strip(), 160)

    lower = title.lower()
    matched = next((desc for keyword, desc in DESCRIPTION_PATTERNS if keyword in lower), GENERIC_DESCRIPTION)
    return _truncate(f"Track {lower} with {matched} on Solana. Updated charts and data visualization.", 160)


def _page_title(title: str) -> str:
    page_title = title if "solana" in title.lower() else f"{title} | Solana"
    page_title += BRAND_SUFFIX
    if len(page_title) > 60:
        page_title = title if len(title) <= 35 else title[:32] + "..."
        page_title += BRAND_SUFFIX
    return page_title


def _og_title(title: str) -> str:
    stripped = title
    if stripped.lower().startswith("solana "):
        stripped = stripped[7:]
    if stripped.lower().endswith(" solana"):
        stripped = stripped[:-7]
    return _truncate(stripped, 40) + BRAND_SUFFIX


def generate_chart_seo(title: str, subtitle: Optional[str] = None, page: Optional[str] = None) -> Dict[str, str]:
    description = _description(title, subtitle)
    og_description = _truncate(description.split(".")[0], 120)
    keywords = BASE_KEYWORDS + [w for w in title.lower().split() if len(w) > 3]
    return {
        "title": _page_title(title),
        "description": description,
        "og_title": _og_title(title),
        "og_description": og_description,
        "og_image": "/og-images/charts/default-chart.png",
        "keywords": ", ".join(keywords),
        "page": page,
    }


def generate_charts_seo(configs_dir: Path) -> Dict[str, Dict[str, str]]:
    """Métadonnées SEO par chart id pour tous les charts ayant un titre."""
    meta = {}
    for chart in _read_chart_configs(configs_dir):
        if chart.get("id") and chart.get("title"):
            meta[str(chart["id"])] = generate_chart_seo(chart["title"], chart.get("subtitle"), chart.get("page"))
    return meta
