#!/usr/bin/env python3
"""
Construit le catalogue d'APIs (data/api-catalog.json) à partir des
configurations de charts exportées (un fichier JSON par API ou par lot).

Usage:
    python scripts/build_api_catalog.py
    python scripts/build_api_catalog.py --configs-dir data/api-configs --output data/api-catalog.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

# Ajouter le répertoire parent au PYTHONPATH
sys.path.append(str(Path(__file__).parent.parent))

from services.rag.catalog_builder import build_catalog
from shared.json_store import atomic_json_dump

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def read_configs(configs_dir: Path) -> List[Dict[str, Any]]:
    """Configs d'APIs: liste, {"apis": [...]}, {"charts": [...]} ou objet unique par fichier"""
    configs: List[Dict[str, Any]] = []
    for path in sorted(configs_dir.glob("*.json")):
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"⚠️ Skipping {path.name}: {e}")
            continue
        if isinstance(raw, dict):
            items = raw.get("apis") or raw.get("charts") or [raw]
        else:
            items = raw
        configs.extend(item for item in items if isinstance(item, dict))
    return configs


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Construit le catalogue d'APIs pour la recherche NLP")
    parser.add_argument("--configs-dir", type=Path, default=Path("data/api-configs"), help="Dossier des configs JSON")
    parser.add_argument("--output", type=Path, default=Path("data/api-catalog.json"), help="Fichier catalogue")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    if not args.configs_dir.is_dir():
        logger.error(f"❌ Configs directory not found: {args.configs_dir}")
        return 1

    configs = read_configs(args.configs_dir)
    catalog = build_catalog(configs)
    atomic_json_dump(catalog, args.output)

    domains: Dict[str, int] = {}
    for entry in catalog["entries"]:
        domains[entry["domain"]] = domains.get(entry["domain"], 0) + 1
    logger.info(f"✅ Catalog written to {args.output}: {len(catalog['entries'])} APIs")
    for domain, count in sorted(domains.items()):
        logger.info(f"   {domain}: {count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
