"""
Normaliseurs des résultats TopLedger.

Chaque fonction prend les rows brutes (query_result.data.rows) et retourne
des lignes typées (dataclasses). Les valeurs manquantes valent 0 / "".
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from services.chart_data import parse_date

logger = logging.getLogger(__name__)

Rows = List[Dict[str, Any]]


def to_float(value: Any) -> float:
    try:
        if value is None or value == "":
            return 0.0
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if result != result else result  # NaN -> 0


def to_int(value: Any) -> int:
    return int(to_float(value))


def first_of(row: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return default


def snake_case(name: str) -> str:
    name = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name.strip())
    return re.sub(r"[^0-9a-zA-Z]+", "_", name).strip("_").lower()


def sort_by_date(items: list, field: str, reverse: bool = False) -> list:
    # Dates illisibles en tête (tri stable)
    def key(item):
        return parse_date(getattr(item, field)) or datetime.min
    return sorted(items, key=key, reverse=reverse)


# ── DEX ───────────────────────────────────────────────────────────────

@dataclass
class VolumeHistoryPoint:
    date: str
    volume: float


def normalize_volume_history(rows: Rows) -> List[VolumeHistoryPoint]:
    points = [
        VolumeHistoryPoint(
            date=str(first_of(row, "period_start", "dt", default="")),
            volume=to_float(first_of(row, "Volume", "volume", default=0)),
        )
        for row in rows
    ]
    return sort_by_date([p for p in points if p.date], "date")


@dataclass
class VolumeByProgramPoint:
    dex: str
    volume: float
    percentage: float


PRELOADED_VOLUME_BY_PROGRAM = [
    VolumeByProgramPoint("Jupiter", 315763185973.88, 41.9),
    VolumeByProgramPoint("Raydium", 179695975749.29, 23.8),
    VolumeByProgramPoint("Others", 124512264813.70, 16.5),
    VolumeByProgramPoint("OKX", 31692550672.43, 4.2),
    VolumeByProgramPoint("Orca", 29619675738.89, 3.9),
    VolumeByProgramPoint("Meteora", 24222365007.58, 3.2),
    VolumeByProgramPoint("Pump Fun", 20505592296.73, 2.7),
    VolumeByProgramPoint("SolFi", 10682186830.76, 1.4),
    VolumeByProgramPoint("Lifinity", 10628296161.39, 1.4),
    VolumeByProgramPoint("Others (Low Volume)", 6348633490.36, 0.8),
]


def normalize_volume_by_program(rows: Rows) -> List[VolumeByProgramPoint]:
    total = sum(to_float(row.get("volume")) for row in rows)
    points = [
        VolumeByProgramPoint(
            dex=str(row.get("dex") or ""),
            volume=to_float(row.get("volume")),
            percentage=to_float(row.get("volume")) / total * 100 if total > 0 else 0.0,
        )
        for row in rows
    ]
    return sorted(points, key=lambda p: p.volume, reverse=True)


@dataclass
class TopProgramPoint:
    program_id: str
    program_name: str
    program_type: str
    volume: float
    volume_share: float


def normalize_top_programs(rows: Rows) -> List[TopProgramPoint]:
    total = sum(to_float(row.get("volume")) for row in rows)
    points = []
    for row in rows:
        volume = to_float(row.get("volume"))
        points.append(TopProgramPoint(
            program_id=str(row.get("program_id") or ""),
            program_name=str(row.get("program_name") or "Unknown"),
            program_type=str(row.get("program_type") or "Other"),
            volume=volume,
            volume_share=volume / total * 100 if total > 0 else 0.0,
        ))
    return [p for p in points if p.program_id]


def group_programs_by_type(points: Iterable[TopProgramPoint]) -> List[Dict[str, Any]]:
    """Volume agrégé par type de programme, part en %, trié décroissant."""
    df = pd.DataFrame([{"type": p.program_type, "volume": p.volume} for p in points])
    if df.empty:
        return []
    grouped = df.groupby("type", as_index=False)["volume"].sum()
    total = grouped["volume"].sum()
    grouped["share"] = grouped["volume"] / total * 100 if total > 0 else 0.0
    grouped = grouped.sort_values("volume", ascending=False)
    return grouped.to_dict(orient="records")


@dataclass
class AggregatorVolumePoint:
    dex: str
    direct: float
    aggregator: float
    total: float


def normalize_aggregators_dex_volume(rows: Rows) -> List[AggregatorVolumePoint]:
    """Pivot (dex, medium, Volume) -> une ligne par DEX avec Direct / Aggregator."""
    df = pd.DataFrame(
        [{"dex": row.get("dex"), "medium": row.get("medium"), "volume": to_float(row.get("Volume"))}
         for row in rows if row.get("dex")]
    )
    if df.empty:
        return []
    df = df[df["medium"].isin(["Direct", "Aggregator"])]
    if df.empty:
        return []
    pivot = df.pivot_table(index="dex", columns="medium", values="volume", aggfunc="sum", fill_value=0.0)
    pivot = pivot.reindex(columns=["Direct", "Aggregator"], fill_value=0.0)
    pivot["total"] = pivot["Direct"] + pivot["Aggregator"]
    pivot = pivot.sort_values("total", ascending=False)
    return [
        AggregatorVolumePoint(dex=str(dex), direct=float(r["Direct"]), aggregator=float(r["Aggregator"]),
                              total=float(r["total"]))
        for dex, r in pivot.iterrows()
    ]


@dataclass
class TradersPoint:
    date: str
    active_signer: int
    new_signer: int
    new_traders_activation_ratio: float
    cumulative_signer: int


TRADERS_FIELDS = ("active_signer", "new_signer", "new_traders_activation_ratio", "cumulative_signer")


def normalize_traders(rows: Rows) -> List[TradersPoint]:
    points = []
    for row in rows:
        if not row.get("partition_0") or any(row.get(f) is None for f in TRADERS_FIELDS):
            continue
        points.append(TradersPoint(
            date=str(row["partition_0"]),
            active_signer=to_int(row["active_signer"]),
            new_signer=to_int(row["new_signer"]),
            new_traders_activation_ratio=to_float(row["new_traders_activation_ratio"]),
            cumulative_signer=to_int(row["cumulative_signer"]),
        ))
    skipped = len(rows) - len(points)
    if skipped:
        logger.debug(f"traders: {skipped} incomplete rows skipped")
    return sort_by_date(points, "date")


# ── Network usage ─────────────────────────────────────────────────────

@dataclass
class TxnStatsPoint:
    block_date: str
    total_transactions: float
    total_vote_transactions: float
    total_non_vote_transactions: float
    success_rate: float
    non_vote_success_rate: float


def normalize_txn_stats(rows: Rows) -> List[TxnStatsPoint]:
    points = [
        TxnStatsPoint(
            block_date=str(row.get("block_date") or ""),
            total_transactions=to_float(row.get("Total_Transactions")),
            total_vote_transactions=to_float(row.get("Total_Vote_Transactions")),
            total_non_vote_transactions=to_float(row.get("Total_Non_Vote_Transactions")),
            # Les fautes de frappe viennent des colonnes de la requête
            success_rate=to_float(row.get("Succeesful_Transactions_perc")),
            non_vote_success_rate=to_float(row.get("Successful_Non_Vote_Transactiosn_perc")),
        )
        for row in rows
    ]
    return sort_by_date(points, "block_date")


@dataclass
class TPSPoint:
    block_date: str
    total_tps: float
    success_tps: float
    failed_tps: float
    real_tps: float


def normalize_tps(rows: Rows) -> List[TPSPoint]:
    points = [
        TPSPoint(
            block_date=str(row.get("block_date") or ""),
            total_tps=to_float(row.get("Total_TPS")),
            success_tps=to_float(row.get("Success_TPS")),
            failed_tps=to_float(row.get("Failed_TPS")),
            real_tps=to_float(row.get("Real_TPS")),
        )
        for row in rows
    ]
    return sort_by_date(points, "block_date")


@dataclass
class TxnFeesPoint:
    block_date: str
    avg_fee: float


def normalize_txn_fees(rows: Rows) -> List[TxnFeesPoint]:
    points = [
        TxnFeesPoint(block_date=str(row.get("block_date") or ""),
                     avg_fee=to_float(row.get("Average_Transaction_Fees")))
        for row in rows
    ]
    return sort_by_date(points, "block_date")


@dataclass
class UserActivityPoint:
    block_date: str
    active_wallets: int
    new_wallets: int


def normalize_user_activity(rows: Rows) -> List[UserActivityPoint]:
    points = [
        UserActivityPoint(
            block_date=str(row.get("block_date") or ""),
            active_wallets=to_int(row.get("Active_Wallets")),
            new_wallets=to_int(row.get("New_Wallets")),
        )
        for row in rows
    ]
    return sort_by_date(points, "block_date")


# Colonnes connues de la requête transactions (orthographe amont conservée)
TRANSACTION_COLUMNS = {
    "Total_Transactions": "total_transactions",
    "Succeessful_Transactions": "successful_transactions",
    "Failed_Transactions": "failed_transactions",
    "Total_Vote_Transactions": "total_vote_transactions",
    "Total_Non_Vote_Transactions": "total_non_vote_transactions",
    "Successful_Vote_Transactions": "successful_vote_transactions",
    "Successful_Non_Vote_Transactions": "successful_non_vote_transactions",
    "Failed_Vote_Transactions": "failed_vote_transactions",
    "Failed_Non_Vote_Transactions": "failed_non_vote_transactions",
    "Succeesful_Transactions_perc": "successful_transactions_perc",
    "Non_Vote_Transactions_perc": "non_vote_transactions_perc",
    "Successful_Non_Vote_Transactiosn_perc": "successful_non_vote_transactions_perc",
    "Total_TPS": "total_tps",
    "Success_TPS": "success_tps",
    "Failed_TPS": "failed_tps",
    "Real_TPS": "real_tps",
    "Total_Fees": "total_fees",
    "Non_Vote_Transactions_Fees": "non_vote_transactions_fees",
    "Vote_Transactions_Fees": "vote_transactions_fees",
    "Priority_Fees": "priority_fees",
}


def normalize_transactions(rows: Rows) -> List[Dict[str, Any]]:
    """Lignes dict: date + colonnes connues mappées, autres colonnes en snake_case."""
    out = []
    for row in rows:
        item: Dict[str, Any] = {"date": str(row.get("block_date") or "")}
        for key, value in row.items():
            if key == "block_date":
                continue
            item[TRANSACTION_COLUMNS.get(key) or snake_case(key)] = to_float(value)
        for target in TRANSACTION_COLUMNS.values():
            item.setdefault(target, 0.0)
        out.append(item)
    return sorted(out, key=lambda r: parse_date(r["date"]) or datetime.min)


# ── Revenue / economics ───────────────────────────────────────────────

@dataclass
class EconomicValuePoint:
    year: int
    quarter: int
    base_fee: float
    priority_fee: float
    vote_fees: float
    total_jito_tips: float
    real_economic_value: float
    sol_issuance: float
    total_economic_value: float
    base_fee_usd: float
    priority_fee_usd: float
    vote_fees_usd: float
    total_jito_tips_usd: float
    sol_issuance_usd: float
    real_economic_value_usd: float
    total_economic_value_usd: float


ECONOMIC_VALUE_FIELDS = [
    "base_fee", "priority_fee", "vote_fees", "total_jito_tips", "real_economic_value",
    "sol_issuance", "total_economic_value", "base_fee_usd", "priority_fee_usd", "vote_fees_usd",
    "total_jito_tips_usd", "sol_issuance_usd", "real_economic_value_usd", "total_economic_value_usd",
]


def normalize_economic_value(rows: Rows) -> List[EconomicValuePoint]:
    points = [
        EconomicValuePoint(
            year=to_int(row.get("year")),
            quarter=to_int(row.get("quarter")),
            **{f: to_float(row.get(f)) for f in ECONOMIC_VALUE_FIELDS},
        )
        for row in rows
    ]
    return sorted(points, key=lambda p: (p.year, p.quarter), reverse=True)


@dataclass
class LaunchpadRevenuePoint:
    month: str
    platform: str
    protocol_revenue: float


def normalize_launchpad_revenue(rows: Rows) -> List[LaunchpadRevenuePoint]:
    points = [
        LaunchpadRevenuePoint(
            month=str(row.get("month") or ""),
            platform=str(row.get("platform") or ""),
            protocol_revenue=to_float(row.get("protocol_revenue")),
        )
        for row in rows
    ]
    return sort_by_date(points, "month")


@dataclass
class DappRevenuePoint:
    dapp: str
    segment: str
    protocol_revenue: float
    segment_revenue: float


def normalize_dapp_revenue(rows: Rows) -> List[DappRevenuePoint]:
    return [
        DappRevenuePoint(
            dapp=str(row.get("Dapp") or ""),
            segment=str(row.get("Segment") or ""),
            protocol_revenue=to_float(row.get("protocol_revenue")),
            segment_revenue=to_float(row.get("segment_revenue")),
        )
        for row in rows
    ]


SEGMENT_KEYS = ["DeFi", "NFT Marketplace", "Gaming", "Infrastructure", "Wallet", "Other"]

SEGMENT_MAPPING = {
    "Spot Dex": "DeFi",
    "Borrow and Lending": "DeFi",
    "MEV": "DeFi",
    "Payments": "DeFi",
    "NFT Marketplaces": "NFT Marketplace",
    "DePIN": "Infrastructure",
    "Infrastructure": "Infrastructure",
    "Telegram Bot": "Wallet",
    "Wallets": "Wallet",
    "Memecoin Trading App": "Gaming",
    "Memecoin LaunchPad": "Gaming",
    "Others": "Other",
}


@dataclass
class RevenueBySegmentPoint:
    block_date: str
    segment: str
    protocol_revenue: float


def normalize_revenue_by_segment(rows: Rows) -> List[RevenueBySegmentPoint]:
    """Regroupe par date et segment mappé; chaque date reçoit toutes les clés de segment."""
    records = [
        {
            "block_date": str(row.get("block_date") or ""),
            "segment": SEGMENT_MAPPING.get(row.get("Segment"), "Other"),
            "protocol_revenue": to_float(row.get("protocol_revenue")),
        }
        for row in rows if row.get("block_date")
    ]
    if not records:
        return []
    grouped = pd.DataFrame(records).groupby(["block_date", "segment"])["protocol_revenue"].sum()
    dates = sorted(grouped.index.get_level_values(0).unique(), key=lambda d: parse_date(d) or datetime.min)
    return [
        RevenueBySegmentPoint(block_date=date, segment=segment,
                              protocol_revenue=float(grouped.get((date, segment), 0.0)))
        for date in dates
        for segment in SEGMENT_KEYS
    ]


@dataclass
class IssuanceBurnPoint:
    date: str
    gross_sol_issuance: float
    net_sol_issuance: float
    sol_burn: float
    staking_reward: float
    voting_reward: float
    jito_labs_commission: float
    burn_ratio: float
    block_height: Optional[int] = None


def normalize_issuance_burn(rows: Rows) -> List[IssuanceBurnPoint]:
    points = [
        IssuanceBurnPoint(
            date=str(row["backfilling_epoch_date"]),
            gross_sol_issuance=to_float(row.get("gross_sol_issuance")),
            net_sol_issuance=to_float(row.get("net_sol_issuance")),
            sol_burn=to_float(row.get("sol_burn")),
            staking_reward=to_float(row.get("staking_reward")),
            voting_reward=to_float(row.get("voting_reward")),
            jito_labs_commission=to_float(row.get("jito_labs_commission")),
            burn_ratio=to_float(row.get("burn_ratio")),
            block_height=to_int(row["block_height"]) if row.get("block_height") else None,
        )
        for row in rows if row.get("backfilling_epoch_date")
    ]
    return sort_by_date(points, "date")
