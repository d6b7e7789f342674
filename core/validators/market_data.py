"""
Data quality validator for incoming daily bars

Validates:
- Per-symbol timestamp ordering (bars must advance)
- Close-to-close spike detection (log only)
"""

import logging

from core.models.market_data import Bar

logger = logging.getLogger(__name__)


class BarValidator:
    """
    Bar quality validation

    Features:
    - Out-of-order / duplicate rejection per symbol
    - Daily move spike detection (>50% close-to-close, warning only)
    """

    def __init__(self, spike_threshold_pct: float = 50.0):
        """
        Initialize bar validator

        Args:
            spike_threshold_pct: Close-to-close move that triggers a warning
        """
        self.spike_threshold_pct = spike_threshold_pct
        self.last_bars: dict[str, Bar] = {}  # {symbol: newest accepted bar}
        self.spike_count = 0
        self.out_of_order_count = 0

    def validate_bar(self, bar: Bar) -> tuple[bool, str | None]:
        """
        Validate bar and, if valid, record it as the symbol's newest

        Checks:
        1. Timestamp strictly after the last accepted bar for the symbol
        2. Spike detection (does not reject)

        Returns:
            (is_valid, error_message)
            - (True, None) if valid
            - (False, "error reason") if invalid

        Example:
            >>> validator = BarValidator()
            >>> is_valid, error = validator.validate_bar(bar)
            >>> if not is_valid:
            ...     logger.error(f"Rejected bar: {error}")
        """
        last = self.last_bars.get(bar.symbol)
        if last is not None and bar.timestamp <= last.timestamp:
            self.out_of_order_count += 1
            return False, (
                f"Out-of-order bar for {bar.symbol}: {bar.timestamp} "
                f"is not after {last.timestamp}"
            )

        if last is not None:
            change_pct = abs((bar.close - last.close) / last.close * 100)
            if change_pct > self.spike_threshold_pct:
                self.spike_count += 1
                # Don't reject - could be a split or a real market event
                logger.warning(
                    f"⚠️ Price spike detected: {bar.symbol} {change_pct:.2f}% "
                    f"close-to-close ({last.close} → {bar.close})"
                )

        self.last_bars[bar.symbol] = bar
        return True, None

    def last_timestamp(self, symbol: str):
        """Timestamp of the newest accepted bar (None if the symbol is unseen)"""
        last = self.last_bars.get(symbol.upper())
        return last.timestamp if last else None

    def get_stats(self) -> dict[str, int]:
        """
        Get validation statistics

        Example:
            >>> stats = validator.get_stats()
            >>> print(f"Out of order: {stats['out_of_order_count']}")
        """
        return {
            "spike_count": self.spike_count,
            "out_of_order_count": self.out_of_order_count,
            "symbols_tracked": len(self.last_bars),
        }

    def reset_stats(self) -> None:
        """Reset statistics counters"""
        self.spike_count = 0
        self.out_of_order_count = 0
