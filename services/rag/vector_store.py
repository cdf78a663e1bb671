"""
Stores de recherche sur le catalogue d'APIs.

- KeywordVectorStore: scoring lexical, sans dépendance externe
- EmbeddingVectorStore: embeddings OpenAI + similarité cosinus (numpy),
  persistés en JSON pour éviter de ré-embedder le catalogue à chaque démarrage
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

import numpy as np

from api.exceptions import ResearchException
from config.settings import LLMConfig, RAGConfig
from services.rag.catalog import ApiCatalog, ApiCatalogEntry
from shared.json_store import atomic_json_dump, read_json

logger = logging.getLogger(__name__)

EMBED_BATCH_SIZE = 10
EMBED_BATCH_DELAY_SEC = 0.1

EmbedFn = Callable[[List[str]], Awaitable[List[List[float]]]]


class EmbeddingError(ResearchException):
    """Embeddings indisponibles (pas de clé, erreur API, store incohérent)"""
    pass


@dataclass
class ScoredEntry:
    entry: ApiCatalogEntry
    score: float

    def to_dict(self) -> Dict:
        data = self.entry.model_dump()
        data["score"] = round(self.score, 4)
        return data


class KeywordVectorStore:
    """Recherche lexicale: sous-chaînes, correspondances partielles, bonus domaine/mots-clés."""

    store_type = "keyword"

    def __init__(self, entries: List[ApiCatalogEntry]):
        self.entries = list(entries)
        self._texts = {e.id: e.search_text() for e in self.entries}

    def search(self, query: str, top_k: int = 5, domain_filter: Optional[str] = None) -> List[ScoredEntry]:
        words = [w for w in query.lower().split() if len(w) > 2]
        if not words:
            return []

        candidates = self.entries
        if domain_filter:
            candidates = [e for e in candidates if e.domain == domain_filter]

        scored = []
        for entry in candidates:
            text = self._texts[entry.id]
            text_words = text.split()
            domain = entry.domain.lower()
            keywords = [k.lower() for k in entry.keywords]

            score = 0.0
            for word in words:
                if word in text:
                    score += 1.0
                else:
                    partial = sum(1 for tw in text_words if word in tw or tw in word)
                    score += 0.5 * partial
                if word in domain:
                    score += 0.5
                score += 0.3 * sum(1 for k in keywords if word in k)

            score /= len(words)
            if score > 0:
                scored.append(ScoredEntry(entry, score))

        scored.sort(key=lambda s: s.score, reverse=True)
        return scored[:top_k]

    def get_stats(self) -> Dict:
        domains: Dict[str, int] = {}
        for entry in self.entries:
            domains[entry.domain] = domains.get(entry.domain, 0) + 1
        return {"store_type": self.store_type, "total_entries": len(self.entries), "domains": domains}


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return float(np.dot(a, b) / norm)


class EmbeddingVectorStore:
    """Similarité cosinus sur embeddings OpenAI."""

    store_type = "embedding"

    def __init__(self, entries: List[ApiCatalogEntry], embed: EmbedFn, model: str, max_results: int = 10):
        self.entries = list(entries)
        self.embed = embed
        self.model = model
        self.max_results = max_results
        self._vectors: Dict[str, np.ndarray] = {}
        self.created_at: Optional[str] = None

    @property
    def initialized(self) -> bool:
        return bool(self._vectors) and len(self._vectors) == len(self.entries)

    async def initialize(self):
        """Embeds le search_text de chaque entrée par lots de 10 (pause 100ms entre lots)."""
        vectors: Dict[str, np.ndarray] = {}
        for start in range(0, len(self.entries), EMBED_BATCH_SIZE):
            batch = self.entries[start:start + EMBED_BATCH_SIZE]
            embeddings = await self._embed([e.search_text() for e in batch])
            if len(embeddings) != len(batch):
                raise EmbeddingError("Embedding count mismatch", {"expected": len(batch), "got": len(embeddings)})
            for entry, vector in zip(batch, embeddings):
                vectors[entry.id] = np.asarray(vector, dtype=float)
            logger.debug(f"Embedded {min(start + EMBED_BATCH_SIZE, len(self.entries))}/{len(self.entries)} entries")
            if start + EMBED_BATCH_SIZE < len(self.entries):
                await asyncio.sleep(EMBED_BATCH_DELAY_SEC)

        self._vectors = vectors
        self.created_at = datetime.now(timezone.utc).isoformat()
        logger.info(f"✅ Embedding store initialized: {len(vectors)} entries ({self.model})")

    async def _embed(self, texts: List[str]) -> List[List[float]]:
        try:
            return await self.embed(texts)
        except EmbeddingError:
            raise
        except ResearchException as e:
            raise EmbeddingError(f"Embedding request failed: {e.message}", e.details)

    async def search(self, query: str, top_k: int = 5, domain_filter: Optional[str] = None) -> List[ScoredEntry]:
        if not self.initialized:
            raise EmbeddingError("Embedding store not initialized")

        query_vector = np.asarray((await self._embed([query.lower()]))[0], dtype=float)
        scored = [
            ScoredEntry(entry, cosine_similarity(query_vector, self._vectors[entry.id]))
            for entry in self.entries
        ]
        if domain_filter:
            scored = [s for s in scored if s.entry.domain == domain_filter]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored[:min(top_k, self.max_results)]

    def save(self, path: Path):
        payload = {
            "model": self.model,
            "created_at": self.created_at,
            "total_entries": len(self._vectors),
            "documents": [
                {"id": api_id, "embedding": vector.tolist()}
                for api_id, vector in self._vectors.items()
            ],
        }
        atomic_json_dump(payload, path, indent=None)
        logger.info(f"Embedding store saved to {path} ({len(self._vectors)} documents)")

    def load(self, path: Path) -> bool:
        """Charge un store persisté; False si absent, autre modèle ou ids différents du catalogue."""
        path = Path(path)
        if not path.exists():
            return False
        try:
            raw = read_json(path)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Cannot read embedding store {path}: {e}")
            return False

        if raw.get("model") != self.model:
            logger.warning(f"Embedding store model {raw.get('model')} != {self.model}, ignoring")
            return False

        vectors = {doc["id"]: np.asarray(doc["embedding"], dtype=float) for doc in raw.get("documents", [])}
        if set(vectors) != {e.id for e in self.entries}:
            logger.warning("Embedding store ids do not match the catalog, ignoring")
            return False

        self._vectors = vectors
        self.created_at = raw.get("created_at")
        return True

    def get_stats(self) -> Dict:
        domains: Dict[str, int] = {}
        for entry in self.entries:
            domains[entry.domain] = domains.get(entry.domain, 0) + 1
        return {
            "store_type": self.store_type,
            "total_entries": len(self.entries),
            "domains": domains,
            "model": self.model,
            "created_at": self.created_at,
        }


def create_vector_store(
    catalog: ApiCatalog,
    llm_config: LLMConfig,
    rag_config: RAGConfig,
    embed: Optional[EmbedFn] = None,
):
    """
    Store embeddings persisté si utilisable (clé OpenAI, fichier aux ids du catalogue),
    sinon store lexical.
    """
    entries = list(catalog)
    if rag_config.use_embeddings and llm_config.openai_api_key and embed is not None:
        store = EmbeddingVectorStore(entries, embed, llm_config.embedding_model)
        if store.load(rag_config.vector_store_path):
            logger.info(f"Using embedding store ({len(entries)} entries)")
            return store
        logger.warning(f"No usable embedding store at {rag_config.vector_store_path}, using keyword search")
    elif rag_config.use_embeddings:
        logger.warning("OpenAI API key not configured, using keyword search")
    return KeywordVectorStore(entries)
