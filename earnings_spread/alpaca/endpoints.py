"""
Alpaca API endpoint definitions.

Documentation: https://docs.alpaca.markets/reference
"""

# Market data hosts
STOCK_DATA_URL = "https://data.alpaca.markets/v2"
OPTIONS_DATA_URL = "https://data.alpaca.markets/v1beta1"

# Trading endpoints (relative to the paper or live trading URL)
CLOCK = "/clock"
ACCOUNT = "/account"
POSITIONS = "/positions"
ORDERS = "/orders"
ORDER_DETAILS = "/orders/{order_id}"

# Stock data endpoints
STOCK_BARS = "/stocks/bars"
STOCK_LATEST_TRADE = "/stocks/{symbol}/trades/latest"
STOCK_LATEST_QUOTE = "/stocks/{symbol}/quotes/latest"

# Options data endpoints
OPTION_SNAPSHOTS = "/options/snapshots/{symbol}"
OPTION_LATEST_QUOTES = "/options/quotes/latest"
OPTION_TRADES = "/options/trades"

OPTIONS_FEED = "opra"
