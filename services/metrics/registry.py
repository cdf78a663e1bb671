"""
Registre des requêtes TopLedger exposées comme métriques.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from services.metrics import normalizers as n


@dataclass(frozen=True)
class MetricQuery:
    name: str
    query_id: int
    normalizer: Callable[[List[Dict[str, Any]]], list]
    description: str
    base: str = "tl"
    # Nom du paramètre de période ("Date Part", "Time Period") et valeurs acceptées
    period_param: Optional[str] = None
    periods: Tuple[str, ...] = ()
    default_period: Optional[str] = None
    extra_params: Dict[str, Any] = field(default_factory=dict)
    currency_param: Optional[str] = None
    max_age: Optional[int] = None
    date_field: Optional[str] = "date"
    domain: str = "overview"

    @property
    def method(self) -> str:
        return "POST" if (self.period_param or self.currency_param or self.extra_params) else "GET"

    def build_parameters(self, period: Optional[str] = None, currency: Optional[str] = None) -> Optional[Dict[str, Any]]:
        if self.method == "GET":
            return None
        params: Dict[str, Any] = dict(self.extra_params)
        if self.period_param:
            params[self.period_param] = period or self.default_period
        if self.currency_param:
            params[self.currency_param] = (currency or "USD").upper()
        return params

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "query_id": self.query_id,
            "base": self.base,
            "method": self.method,
            "domain": self.domain,
            "description": self.description,
            "periods": list(self.periods),
            "default_period": self.default_period,
            "date_field": self.date_field,
            "supports_currency": self.currency_param is not None,
        }


_QUERIES = [
    MetricQuery("volume_history", 13192, n.normalize_volume_history, "DEX volume history",
                period_param="Date Part", periods=("W", "M", "Q"), default_period="M", domain="dex"),
    MetricQuery("volume_by_program", 13222, n.normalize_volume_by_program, "DEX volume share by program",
                date_field=None, domain="dex"),
    MetricQuery("top_programs", 14592, n.normalize_top_programs, "Top DEX programs by volume",
                period_param="Time Period", periods=("W", "M", "Q", "Y", "ALL"), default_period="M",
                extra_params={"Limit": 20}, date_field=None, domain="dex"),
    MetricQuery("aggregators_dex_volume", 13234, n.normalize_aggregators_dex_volume,
                "DEX volume routed directly vs through aggregators", date_field=None, domain="dex"),
    MetricQuery("traders", 13181, n.normalize_traders, "Active and new DEX traders", domain="dex"),
    MetricQuery("txn_stats", 12976, n.normalize_txn_stats, "Transaction counts and success rates",
                period_param="Date Part", periods=("M", "Q", "Y"), default_period="M", date_field="block_date"),
    MetricQuery("tps", 13335, n.normalize_tps, "Transactions per second", date_field="block_date"),
    MetricQuery("txn_fees", 13249, n.normalize_txn_fees, "Average transaction fees", date_field="block_date"),
    MetricQuery("user_activity", 12973, n.normalize_user_activity, "Active and new wallets",
                period_param="Date Part", periods=("M", "Q", "Y"), default_period="M", date_field="block_date"),
    MetricQuery("transactions", 13210, n.normalize_transactions, "Transaction cost and capacity", domain="rev"),
    MetricQuery("economic_value", 12258, n.normalize_economic_value, "Real and total economic value by quarter",
                date_field=None, domain="rev"),
    MetricQuery("issuance_burn", 13212, n.normalize_issuance_burn, "SOL issuance, burn and rewards",
                currency_param="currency", max_age=86400, domain="rev"),
    MetricQuery("launchpad_revenue", 13169, n.normalize_launchpad_revenue, "Launchpad protocol revenue",
                base="solana", date_field="month", domain="protocol-revenue"),
    MetricQuery("dapp_revenue", 13241, n.normalize_dapp_revenue, "Protocol revenue by dApp and segment",
                base="solana", date_field=None, domain="protocol-revenue"),
    MetricQuery("revenue_by_segment", 13168, n.normalize_revenue_by_segment, "Protocol revenue by segment",
                base="solana", period_param="Date Part", periods=("W", "M", "Q", "Y"), default_period="W",
                date_field="block_date", domain="protocol-revenue"),
]

QUERIES: Dict[str, MetricQuery] = {q.name: q for q in _QUERIES}
