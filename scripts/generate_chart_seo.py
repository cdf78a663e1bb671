#!/usr/bin/env python3
"""
Génère les métadonnées SEO (title, description, Open Graph, keywords) de
chaque chart à partir des configs de charts.

Usage:
    python scripts/generate_chart_seo.py
    python scripts/generate_chart_seo.py --configs-dir data/temp/chart-configs --output data/chart-seo.json
"""

import argparse
import logging
import sys
from pathlib import Path

# Ajouter le répertoire parent au PYTHONPATH
sys.path.append(str(Path(__file__).parent.parent))

from config import get_settings
from services.seo import generate_charts_seo
from shared.json_store import atomic_json_dump

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Génère les métadonnées SEO des charts")
    parser.add_argument("--configs-dir", type=Path, default=get_settings().storage.chart_configs_dir,
                        help="Dossier des configs de charts")
    parser.add_argument("--output", type=Path, default=Path("data/chart-seo.json"), help="Fichier de sortie")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    meta = generate_charts_seo(args.configs_dir)
    if not meta:
        logger.warning(f"⚠️ No chart with a title found in {args.configs_dir}")
    atomic_json_dump(meta, args.output)
    logger.info(f"✅ SEO metadata generated for {len(meta)} charts -> {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
