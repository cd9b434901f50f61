"""Currency normalization into the reporting currency."""

import logging
from collections.abc import Mapping

logger = logging.getLogger(__name__)


def rate_label(from_currency: str, to_currency: str) -> str:
    return f"{from_currency}_{to_currency}"


class CurrencyNormalizer:
    """Convert amounts using a fixed rate map and record every rate applied.

    A missing pair falls back to a rate of 1.0 and is flagged approximate.
    One instance serves one calculation.
    """

    def __init__(self, rates: Mapping[tuple[str, str], float], reporting_currency: str = "USD"):
        self.rates = dict(rates)
        self.reporting_currency = reporting_currency
        self.rates_used: dict[str, float] = {}
        self.approximate: set[str] = set()

    @property
    def is_approximate(self) -> bool:
        return bool(self.approximate)

    def convert(self, amount: float, from_currency: str, to_currency: str) -> float:
        if from_currency == to_currency:
            return amount
        label = rate_label(from_currency, to_currency)
        rate = self.rates.get((from_currency, to_currency))
        if rate is None:
            if label not in self.approximate:
                logger.warning(f"No exchange rate for {label}, using 1.0")
            self.approximate.add(label)
            rate = 1.0
        self.rates_used[label] = rate
        return amount * rate

    def to_reporting_currency(self, amount: float, from_currency: str) -> float:
        return self.convert(amount, from_currency, self.reporting_currency)

    def notes(self) -> list[str]:
        return [
            f"No exchange rate for {label}; amounts converted at 1.0 and are approximate"
            for label in sorted(self.approximate)
        ]
