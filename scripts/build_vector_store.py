#!/usr/bin/env python3
"""
Calcule les embeddings OpenAI du catalogue d'APIs et les persiste
(data/vector-store.json), pour que le serveur démarre sans ré-embedder.

Nécessite OPENAI_API_KEY (ou LLM_OPENAI_API_KEY).

Usage:
    python scripts/build_vector_store.py
    python scripts/build_vector_store.py --catalog data/api-catalog.json --output data/vector-store.json
"""

import asyncio
import argparse
import logging
import sys
from pathlib import Path

# Ajouter le répertoire parent au PYTHONPATH
sys.path.append(str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from api.exceptions import ResearchException
from config import get_settings
from services.rag.catalog import ApiCatalog
from services.rag.llm_client import OpenAIChatClient
from services.rag.vector_store import EmbeddingVectorStore

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    rag = get_settings().rag
    parser = argparse.ArgumentParser(description="Construit le store d'embeddings du catalogue d'APIs")
    parser.add_argument("--catalog", type=Path, default=rag.catalog_path, help="Fichier catalogue")
    parser.add_argument("--output", type=Path, default=rag.vector_store_path, help="Fichier de sortie")
    return parser.parse_args()


async def main_async(args: argparse.Namespace) -> int:
    llm_config = get_settings().llm
    if not llm_config.openai_api_key:
        logger.error("❌ OPENAI_API_KEY not configured")
        return 1

    catalog = ApiCatalog.load(args.catalog)
    if not len(catalog):
        logger.error(f"❌ Empty catalog: {args.catalog}")
        return 1

    llm = OpenAIChatClient(llm_config)
    try:
        store = EmbeddingVectorStore(list(catalog), llm.embed, llm_config.embedding_model)
        logger.info(f"🔄 Embedding {len(catalog)} APIs with {llm_config.embedding_model}...")
        await store.initialize()
        store.save(args.output)
    except ResearchException as e:
        logger.error(f"❌ Vector store build failed: {e.message}")
        return 1
    finally:
        await llm.aclose()

    logger.info(f"✅ Vector store written to {args.output}")
    return 0


if __name__ == "__main__":
    load_dotenv()
    sys.exit(asyncio.run(main_async(parse_args())))
