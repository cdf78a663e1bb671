#!/usr/bin/env python3
"""
Génère sitemap.xml et robots.txt (pages statiques, pages de sections et
pages de partage des charts).

Usage:
    python scripts/generate_sitemap.py --output-dir public
    python scripts/generate_sitemap.py --base-url https://research.topledger.xyz
"""

import argparse
import logging
import sys
from pathlib import Path

# Ajouter le répertoire parent au PYTHONPATH
sys.path.append(str(Path(__file__).parent.parent))

from config import get_settings
from services.seo import DYNAMIC_PAGES, STATIC_PAGES, build_robots, build_sitemap, collect_chart_ids

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Génère sitemap.xml et robots.txt")
    parser.add_argument("--output-dir", type=Path, default=Path("public"), help="Dossier de sortie")
    parser.add_argument("--base-url", default=settings.site_base_url, help="URL publique du site")
    parser.add_argument("--configs-dir", type=Path, default=settings.storage.chart_configs_dir,
                        help="Dossier des configs de charts (pages /share/chart/<id>)")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    args.output_dir.mkdir(parents=True, exist_ok=True)

    chart_ids = collect_chart_ids(args.configs_dir)
    (args.output_dir / "sitemap.xml").write_text(build_sitemap(args.base_url, chart_ids=chart_ids), encoding="utf-8")
    (args.output_dir / "robots.txt").write_text(build_robots(args.base_url), encoding="utf-8")

    total = len(STATIC_PAGES) + len(DYNAMIC_PAGES) + len(chart_ids)
    logger.info(f"✅ Sitemap generated: {total} URLs ({len(chart_ids)} chart pages)")
    logger.info(f"✅ robots.txt generated in {args.output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
