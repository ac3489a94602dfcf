"""
Option chain index.

Indexes a ticker's option contracts by expiration and strike so the spread
selector and the gatekeeper filters can look up at-the-money contracts and
expirations inside date windows without re-scanning the raw chain.

Example:
    index = OptionChainIndex.fetch(client, "AAPL", start, end)
    near = index.first_expiration_after(today)
    contract = index.atm_contract(near, current_price)
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional

from .models import OptionContract

logger = logging.getLogger(__name__)


def closest_strike(strikes: Iterable[float], price: float) -> Optional[float]:
    """
    Strike minimizing |strike - price|.

    Equidistant strikes resolve to the lower strike, so the result does not
    depend on the order the chain was returned in.
    """
    ordered = sorted(set(strikes))
    if not ordered:
        return None
    return min(ordered, key=lambda strike: abs(strike - price))


class OptionChainIndex:
    """Option contracts for one underlying, indexed by expiration and strike."""

    def __init__(self, underlying: str, contracts: Iterable[OptionContract]):
        """
        Build the index.

        Args:
            underlying: Underlying ticker
            contracts: Contracts for the underlying (calls, puts or both)
        """
        self.underlying = underlying.upper()
        self._by_expiration: Dict[date, Dict[str, Dict[float, OptionContract]]] = defaultdict(
            lambda: {"call": {}, "put": {}}
        )
        count = 0
        for contract in contracts:
            self._by_expiration[contract.expiration][contract.option_type][contract.strike] = contract
            count += 1
        logger.debug(
            f"Indexed {count} contracts across {len(self._by_expiration)} expirations "
            f"for {self.underlying}"
        )

    @classmethod
    def fetch(
        cls,
        client,
        ticker: str,
        start: date,
        end: date,
        option_type: Optional[str] = "call",
    ) -> "OptionChainIndex":
        """
        Fetch a live chain from the market data client and index it.

        Args:
            client: AlpacaClient (or anything with get_option_chain)
            ticker: Underlying ticker
            start: First expiration date to include
            end: Last expiration date to include
            option_type: "call", "put", or None for both

        Returns:
            OptionChainIndex for the ticker
        """
        contracts = client.get_option_chain(ticker, start, end, option_type)
        return cls(ticker, contracts)

    def __len__(self) -> int:
        return sum(
            len(by_type["call"]) + len(by_type["put"])
            for by_type in self._by_expiration.values()
        )

    def __bool__(self) -> bool:
        return len(self) > 0

    @property
    def expirations(self) -> List[date]:
        """Expirations with at least one contract, ascending."""
        return sorted(
            exp
            for exp, by_type in self._by_expiration.items()
            if by_type["call"] or by_type["put"]
        )

    def contracts_at(self, expiration: date, option_type: str = "call") -> List[OptionContract]:
        """Contracts at an expiration, ordered by strike."""
        by_strike = self._by_expiration.get(expiration, {}).get(option_type, {})
        return [by_strike[strike] for strike in sorted(by_strike)]

    def strikes_at(self, expiration: date, option_type: str = "call") -> List[float]:
        """Strikes listed at an expiration, ascending."""
        return sorted(self._by_expiration.get(expiration, {}).get(option_type, {}))

    def get(
        self, expiration: date, strike: float, option_type: str = "call"
    ) -> Optional[OptionContract]:
        """Contract at an exact expiration and strike, if listed."""
        return self._by_expiration.get(expiration, {}).get(option_type, {}).get(strike)

    def common_strikes(
        self, first: date, second: date, option_type: str = "call"
    ) -> List[float]:
        """Strikes listed at both expirations, ascending."""
        return sorted(
            set(self.strikes_at(first, option_type)) & set(self.strikes_at(second, option_type))
        )

    def expirations_between(self, start: date, end: date) -> List[date]:
        """Expirations within [start, end], ascending."""
        return [exp for exp in self.expirations if start <= exp <= end]

    def first_expiration_after(self, day: date) -> Optional[date]:
        """Earliest expiration strictly after a date."""
        for exp in self.expirations:
            if exp > day:
                return exp
        return None

    def nearest_expiration(self, target: date, window_days: int) -> Optional[date]:
        """
        Expiration closest to a target date, within +/- window_days.

        Ties resolve to the earlier expiration.
        """
        candidates = [
            exp for exp in self.expirations if abs((exp - target).days) <= window_days
        ]
        if not candidates:
            return None
        return min(candidates, key=lambda exp: (abs((exp - target).days), exp))

    def atm_contract(
        self, expiration: date, price: float, option_type: str = "call"
    ) -> Optional[OptionContract]:
        """At-the-money contract at an expiration (lower strike on ties)."""
        strike = closest_strike(self.strikes_at(expiration, option_type), price)
        if strike is None:
            return None
        return self.get(expiration, strike, option_type)
