"""
Metric Loader - Load the warm-up metric set from config

Responsibility: Bridge between config layer and domain layer
- Read warm-up metric configs (config layer)
- Validate kind + params into MetricKeys (domain layer)

This is SERVICE layer - knows about config, uses domain models
"""

import logging

from config.loader import WarmupConfig
from core.exceptions import InvalidParametersError
from core.models.metrics import MetricKey, MetricKind, MetricParams, build_params

logger = logging.getLogger(__name__)


class MetricLoader:
    """Load warm-up metric specs from YAML config"""

    @staticmethod
    def load_specs(config: WarmupConfig) -> list[tuple[MetricKind, MetricParams]]:
        """
        Validate the configured warm-up metrics

        Invalid entries are logged and skipped.

        Returns:
            [(kind, params), ...] in config order

        Example:
            >>> specs = MetricLoader.load_specs(config.warmup)
            >>> [kind.value for kind, _ in specs]
            ['SMA', 'SMA', 'EMA', 'EMA', 'RSI', 'MACD', 'BOLLINGER', 'PRICE_CHANGE', ...]
        """
        specs = []

        for metric in config.metrics:
            try:
                kind = MetricKind(metric.kind.upper())
                params = build_params(kind, metric.params)
                specs.append((kind, params))
                logger.debug(f"  ✓ Loaded {kind.value}: {params}")

            except (ValueError, InvalidParametersError) as e:
                logger.warning(f"  ✗ Skipping {metric.kind}: {e}")

        logger.info(f"✓ Loaded {len(specs)} warm-up metrics")
        return specs

    @staticmethod
    def keys_for(symbol: str, specs: list[tuple[MetricKind, MetricParams]]) -> list[MetricKey]:
        """Expand specs into MetricKeys for one symbol"""
        return [MetricKey.create(symbol, kind, params) for kind, params in specs]
