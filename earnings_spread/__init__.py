"""
Earnings calendar spread strategy.

Scans upcoming earnings, filters candidates through the gatekeeper
pipeline, opens calendar spreads, exits them after the announcement, and
manages open orders through their lifecycle window.
"""

__version__ = "0.1.0"
