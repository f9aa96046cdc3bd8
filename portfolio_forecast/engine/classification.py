#!/usr/bin/env python3
"""
Symbol classification heuristics.

Symbols carry their classification in suffixes and markers (e.g. 'AGG.BOND',
'SPY.ETF', 'TECH_GROWTH.US', 'XYZ_HIGHVOL'). Position tags, when present,
take precedence over these heuristics.
"""


def asset_class_for(symbol: str) -> str:
    """Equities, Bonds or Cash."""
    s = symbol.upper()
    if s.endswith('.BOND'):
        return 'Bonds'
    if s.endswith('.CASH'):
        return 'Cash'
    return 'Equities'


def instrument_category_for(symbol: str) -> str:
    """Fee category: equities, bonds, etfs or options."""
    s = symbol.upper()
    if s.endswith('.BOND'):
        return 'bonds'
    if s.endswith('.ETF'):
        return 'etfs'
    if s.endswith('.OPT'):
        return 'options'
    return 'equities'


def liquidity_bucket_for(symbol: str) -> str:
    """Trading-volume bucket used for slippage: high, medium or low."""
    s = symbol.upper()
    if 'HIGHVOL' in s:
        return 'high'
    if 'MIDVOL' in s:
        return 'medium'
    return 'low'


def impact_bucket_for(symbol: str) -> str:
    """Market-impact bucket: high, medium or low."""
    s = symbol.upper()
    if 'HIGHIMP' in s:
        return 'high'
    if 'MIDIMP' in s:
        return 'medium'
    return 'low'


def sector_for(symbol: str) -> str:
    s = symbol.upper()
    if s.startswith('TECH'):
        return 'Technology'
    if s.startswith('FIN'):
        return 'Financials'
    if s.startswith('HEALTH'):
        return 'Healthcare'
    return 'Other'


def region_for(symbol: str) -> str:
    s = symbol.upper()
    if s.endswith('.US'):
        return 'United States'
    if s.endswith('.EU'):
        return 'Europe'
    if s.endswith('.AS'):
        return 'Asia'
    return 'Other'


def market_cap_for(symbol: str) -> str:
    s = symbol.upper()
    if 'SMALL' in s:
        return 'Small Cap'
    if 'MID' in s and 'MIDVOL' not in s and 'MIDIMP' not in s:
        return 'Mid Cap'
    return 'Large Cap'


def style_for(symbol: str) -> str:
    s = symbol.upper()
    if 'VALUE' in s:
        return 'Value'
    if 'GROWTH' in s:
        return 'Growth'
    return 'Blend'


def execution_instrument_for(symbol: str) -> str:
    """Instrument type for backtest execution costs: stock, etf or index."""
    s = symbol.upper()
    if s.startswith('^') or s.endswith('.IDX'):
        return 'index'
    if s.endswith('.ETF'):
        return 'etf'
    return 'stock'
