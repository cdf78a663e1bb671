"""Configuration package"""
from .settings import (
    settings,
    get_settings,
    get_topledger_config,
    get_llm_config,
    get_rag_config,
    get_storage_config,
    get_security_config,
    get_logging_config
)

__all__ = [
    'settings',
    'get_settings',
    'get_topledger_config',
    'get_llm_config',
    'get_rag_config',
    'get_storage_config',
    'get_security_config',
    'get_logging_config'
]
