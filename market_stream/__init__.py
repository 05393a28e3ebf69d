"""
Market Stream - Binance real-time market data over multiplexed WebSockets

This package provides a streaming subscription manager that multiplexes
several logical feeds (trades, tickers, order-book deltas, liquidations,
mark price, open interest) over one persistent connection per symbol and
recovers transparently from disconnects.

Modules:
    core: Configuration, errors, data model and lifecycle event bus
    data: Streaming core, typed payloads and the REST data source
    cli: Command-line front end
"""

__version__ = "0.1.0"
__author__ = "Market Stream Team"
