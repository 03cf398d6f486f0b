"""
Filter vocabulary for catalog queries.

Each enum mirrors the literal strings stored in the symbols table. The ``ALL``
member is never stored; it is expanded into a concrete value set at query time.
"""
from enum import Enum
from typing import Iterable, Optional


class AssetClass(str, Enum):
    ALL = "All"
    STOCKS = "Stocks"
    ETFS = "ETF"
    MUTUAL_FUNDS = "Mutual Fund"
    INDICES = "Index"
    FUTURES = "Futures"
    CURRENCIES = "Currency"
    CRYPTOCURRENCIES = "Cryptocurrency"


class Category(str, Enum):
    ALL = "All"
    BASIC_MATERIALS = "Basic Materials"
    COMMUNICATION_SERVICES = "Communication Services"
    CONSUMER_CYCLICAL = "Consumer Cyclical"
    CONSUMER_DEFENSIVE = "Consumer Defensive"
    ENERGY = "Energy"
    FINANCIAL_SERVICES = "Financial Services"
    HEALTHCARE = "Healthcare"
    INDUSTRIALS = "Industrials"
    REAL_ESTATE = "Real Estate"
    TECHNOLOGY = "Technology"
    UTILITIES = "Utilities"
    NOT_AVAILABLE = "N/A"


class Exchange(str, Enum):
    ALL = "All"
    NASDAQ = "NASDAQ"
    NYSE = "NYSE"
    NYSE_ARCA = "NYSEArca"
    NYSE_AMERICAN = "NYSE American"
    OTC = "OTC Markets"
    CBOE = "Cboe US"
    TORONTO = "Toronto"
    LONDON = "LSE"
    FRANKFURT = "Frankfurt"
    XETRA = "XETRA"
    PARIS = "Paris"
    AMSTERDAM = "Amsterdam"
    SWISS = "Swiss"
    MILAN = "Milan"
    TOKYO = "Tokyo"
    HONG_KONG = "HKSE"
    SHANGHAI = "Shanghai"
    SHENZHEN = "Shenzhen"
    NSE = "NSE"
    BOMBAY = "Bombay"
    ASX = "ASX"
    CME = "CME"
    CBOT = "CBOT"
    NYMEX = "NY Mercantile"
    COMEX = "COMEX"
    ICE_FUTURES = "ICE Futures"
    CURRENCY = "CCY"
    CRYPTO = "CCC"


# Human-readable labels accepted by search_symbols.
SEARCH_LABELS = {
    "Equity": AssetClass.STOCKS,
    "ETF": AssetClass.ETFS,
    "Mutual Fund": AssetClass.MUTUAL_FUNDS,
    "Index": AssetClass.INDICES,
    "Currency": AssetClass.CURRENCIES,
    "Futures": AssetClass.FUTURES,
    "Crypto": AssetClass.CRYPTOCURRENCIES,
}


def concrete_values(enum_cls) -> set[str]:
    """Every stored literal of a filter enum, excluding ``ALL``."""
    return {member.value for member in enum_cls if member.name != "ALL"}


def expand(value: Enum, known_values: Optional[Iterable[str]] = None) -> set[str]:
    """
    Turn a filter enum member into the set of strings an ``IN`` clause matches.

    Args:
        value: An ``AssetClass``, ``Category`` or ``Exchange`` member.
        known_values: Distinct values observed in the store for this dimension.
            Only consulted when ``value`` is ``ALL``.

    Returns:
        ``{value.value}`` for a concrete member. For ``ALL``, the known values
        when supplied, otherwise every concrete literal of the enum.
    """
    if value.name != "ALL":
        return {value.value}
    if known_values is not None:
        return set(known_values)
    return concrete_values(type(value))
