"""
API Startup & Shutdown Handlers

Handles:
- Chargement du catalogue et préchauffage de l'index de recherche
- Purge des entrées expirées du cache de métadonnées
- Fermeture des clients HTTP et flush des caches à l'arrêt
"""

import logging

logger = logging.getLogger(__name__)


async def warm_search_index() -> bool:
    """
    Charge le catalogue et initialise le store de recherche.

    Returns:
        bool: True si l'index est prêt
    """
    try:
        from api.deps import get_search_service
        search = get_search_service()
        await search.initialize()
        stats = search.get_stats()
        logger.info(f"✅ Search index ready: {stats['total_apis']} APIs ({stats['store_type']})")
        return True
    except Exception as e:
        logger.error(f"❌ Search index warm-up failed: {e}")
        return False


def purge_expired_metadata() -> int:
    try:
        from api.deps import get_metadata_cache
        cache = get_metadata_cache()
        removed = cache.cleanup()
        cache.save_if_dirty()
        if removed:
            logger.info(f"🧹 {removed} expired metadata cache entries removed")
        return removed
    except Exception as e:
        logger.warning(f"⚠️ Metadata cache cleanup failed (non-blocking): {e}")
        return 0


def get_startup_handler():
    """
    Returns the startup event handler for FastAPI.

    Usage:
        @app.on_event("startup")
        async def startup():
            await get_startup_handler()()
    """
    async def startup_warm_caches():
        logger.info("🚀 FastAPI started successfully")
        await warm_search_index()
        purge_expired_metadata()

    return startup_warm_caches


def get_shutdown_handler():
    """
    Returns the shutdown event handler for FastAPI.

    Usage:
        @app.on_event("shutdown")
        async def shutdown():
            await get_shutdown_handler()()
    """
    async def shutdown_cleanup():
        logger.info("🛑 Shutting down FastAPI application...")
        try:
            from api.deps import close_clients
            await close_clients()
            logger.info("✅ HTTP clients closed, caches flushed")
        except Exception as e:
            logger.warning(f"⚠️ Shutdown cleanup failed: {e}")

    return shutdown_cleanup
