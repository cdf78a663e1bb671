#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration Settings - Centralisation avec Pydantic

Ce module centralise toute la configuration du backend de recherche:
- Accès à l'API de requêtes TopLedger (URLs, clés par requête, retries)
- Client LLM (OpenAI chat + embeddings)
- Pipeline RAG (catalogue, vector store, cache de métadonnées, analytics)
- Stockage fichiers (dashboards, configs de charts)
- Sécurité (CORS) et logging
"""

import json
from typing import Annotated, List, Optional, Dict
from pydantic import Field, AliasChoices, field_validator
from pydantic_settings import BaseSettings, NoDecode
from pathlib import Path

from config.ttl_config import CacheTTL


class TopLedgerConfig(BaseSettings):
    """Configuration de l'API de requêtes TopLedger"""
    base_url: str = Field(default="https://analytics.topledger.xyz/tl/api", description="Base API tl")
    solana_base_url: str = Field(default="https://analytics.topledger.xyz/solana/api", description="Base API solana")
    api_key: Optional[str] = Field(None, description="Clé API par défaut")
    query_keys: Annotated[Dict[str, str], NoDecode] = Field(default_factory=dict, description="Clés API par id de requête")
    timeout_sec: float = Field(default=20.0, gt=0, le=120, description="Timeout requête")
    max_retries: int = Field(default=2, ge=0, le=5, description="Tentatives supplémentaires")
    retry_base_delay_sec: float = Field(default=1.0, ge=0, description="Délai backoff initial")
    job_poll_interval_sec: float = Field(default=1.0, ge=0, description="Intervalle polling jobs")
    job_max_polls: int = Field(default=30, ge=1, description="Nombre max de polls d'un job")
    allowed_proxy_hosts: Annotated[List[str], NoDecode] = Field(
        default=["analytics.topledger.xyz"],
        description="Hôtes autorisés pour le proxy"
    )

    @field_validator('query_keys', mode='before')
    @classmethod
    def parse_query_keys(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return {}
            return json.loads(v)
        return v

    @field_validator('allowed_proxy_hosts', mode='before')
    @classmethod
    def parse_hosts(cls, v):
        if isinstance(v, str):
            return [host.strip() for host in v.split(',') if host.strip()]
        return v

    def key_for(self, query_id) -> Optional[str]:
        """Clé API pour une requête (clé dédiée sinon clé par défaut)"""
        return self.query_keys.get(str(query_id)) or self.api_key

    model_config = {
        'env_prefix': 'TOPLEDGER_',
        'env_ignore_empty': True
    }


class LLMConfig(BaseSettings):
    """Configuration du client LLM (OpenAI)"""
    openai_api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices('OPENAI_API_KEY', 'LLM_OPENAI_API_KEY'),
        description="Clé OpenAI"
    )
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="Base API OpenAI")
    model: str = Field(default="gpt-4.1", description="Modèle chat")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0, description="Température")
    max_tokens: int = Field(default=1000, ge=1, description="Tokens max en sortie")
    embedding_model: str = Field(default="text-embedding-3-small", description="Modèle d'embeddings")
    timeout_sec: float = Field(default=30.0, gt=0, description="Timeout appels LLM")

    model_config = {
        'env_prefix': 'LLM_',
        'populate_by_name': True
    }


class RAGConfig(BaseSettings):
    """Configuration du pipeline NLP -> chart"""
    catalog_path: Path = Field(default=Path("data/api-catalog.json"), description="Catalogue d'APIs")
    vector_store_path: Path = Field(default=Path("data/vector-store.json"), description="Embeddings persistés")
    cache_path: Path = Field(default=Path("data/temp/metadata-cache.json"), description="Cache de métadonnées")
    cache_ttl_hours: float = Field(default=CacheTTL.NLP_METADATA / 3600, gt=0, description="TTL cache (heures)")
    cache_max_entries: int = Field(default=1000, ge=10, description="Taille max du cache")
    analytics_path: Path = Field(default=Path("data/logs/query-analytics.jsonl"), description="Log analytics")
    quality_threshold: float = Field(default=0.7, ge=0.0, le=1.0, description="Complétude minimale des données d'une API")
    use_embeddings: bool = Field(default=True, description="Utiliser le store d'embeddings si disponible")

    model_config = {
        'env_prefix': 'RAG_'
    }


class StorageConfig(BaseSettings):
    """Configuration stockage fichiers"""
    dashboards_path: Path = Field(default=Path("data/dashboards.json"), description="Dashboards")
    chart_configs_dir: Path = Field(default=Path("data/temp/chart-configs"), description="Configs de charts")

    model_config = {
        'env_prefix': 'STORAGE_'
    }


class SecurityConfig(BaseSettings):
    """Configuration sécurité"""
    cors_origins: Annotated[List[str], NoDecode] = Field(default=["http://localhost:3000"], description="Origins CORS")

    @field_validator('cors_origins', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    model_config = {
        'env_prefix': 'SECURITY_',
        'env_ignore_empty': True
    }


class LoggingConfig(BaseSettings):
    """Configuration logging"""
    log_level: str = Field(default="INFO", description="Niveau log")
    log_format: str = Field(default="text", description="Format console (json/text)")
    log_file_path: Optional[Path] = Field(None, description="Chemin fichier log")
    log_max_size_mb: int = Field(default=50, description="Taille max log MB")
    log_backup_count: int = Field(default=5, description="Nombre backups log")

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level doit être: {", ".join(valid_levels)}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        if v not in ('json', 'text'):
            raise ValueError('Format log doit être: json ou text')
        return v

    model_config = {
        'env_prefix': 'LOG_'
    }


class Settings(BaseSettings):
    """Configuration principale de l'application"""

    # Environnement
    environment: str = Field(default="development", description="Environnement")
    debug: bool = Field(default=False, description="Mode debug")

    # Sous-configurations
    topledger: TopLedgerConfig = Field(default_factory=TopLedgerConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    rag: RAGConfig = Field(default_factory=RAGConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Configuration serveur
    host: str = Field(default="127.0.0.1", description="Host serveur")
    port: int = Field(default=8000, ge=1, le=65535, description="Port serveur")
    site_base_url: str = Field(default="https://research.topledger.xyz", description="URL publique du site")

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        valid_envs = ['development', 'staging', 'production']
        if v not in valid_envs:
            raise ValueError(f'Environment doit être: {", ".join(valid_envs)}')
        return v

    @field_validator('site_base_url')
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip('/')

    def model_post_init(self, __context):
        """Validation post-initialisation"""
        if self.environment == 'production' and self.debug:
            raise ValueError('Debug ne peut pas être activé en production')

    def get_cors_origins(self) -> List[str]:
        """Obtenir les origins CORS selon l'environnement"""
        if self.environment == 'production':
            return self.security.cors_origins
        origins = self.security.cors_origins.copy()
        for origin in ["http://localhost:3000", "http://localhost:8000", "http://127.0.0.1:8000"]:
            if origin not in origins:
                origins.append(origin)
        return origins

    def is_production(self) -> bool:
        return self.environment == 'production'

    def is_debug_enabled(self) -> bool:
        return self.debug and not self.is_production()

    model_config = {
        'env_file': '.env',
        'env_file_encoding': 'utf-8',
        'case_sensitive': False,
        'populate_by_name': True,
        'extra': 'ignore'
    }


# Instance globale des settings
settings = Settings()


def get_settings() -> Settings:
    """Obtenir l'instance de configuration"""
    return settings


def get_topledger_config() -> TopLedgerConfig:
    return settings.topledger

def get_llm_config() -> LLMConfig:
    return settings.llm

def get_rag_config() -> RAGConfig:
    return settings.rag

def get_storage_config() -> StorageConfig:
    return settings.storage

def get_security_config() -> SecurityConfig:
    return settings.security

def get_logging_config() -> LoggingConfig:
    return settings.logging
