"""
Configuration centralisée des TTL (Time To Live) pour le cache.

Source de vérité unique pour les durées de cache backend.
"""


class CacheTTL:
    """TTL en secondes pour le cache backend."""

    # === Données TopLedger ===
    METRIC_DATA = 5 * 60            # 5 minutes - Résultats de requêtes métriques
    METRIC_HISTORY = 60 * 60        # 1 heure - Historiques longs (trimestres, années)
    PROXY = 5 * 60                  # 5 minutes - Réponses du proxy

    # === Pipeline NLP ===
    NLP_METADATA = 24 * 60 * 60     # 24 heures - Cache requête -> chart spec


# Alias pour import simple
TTL = CacheTTL
