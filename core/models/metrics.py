"""
Metric models

Pydantic models describing what the engine computes and caches:
- MetricKind: enum of supported indicators and statistics
- *Params: one frozen parameter model per kind (validated at construction)
- MetricKey: (symbol, kind, params) - uniquely identifies one cached result
- MetricResult: immutable snapshot of a computed value
- MetricsUpdated: change notification published to subscribers
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializeAsAny,
    ValidationError,
    field_validator,
    model_validator,
)

from core.exceptions import InvalidParametersError


class MetricKind(str, Enum):
    """Supported metric kinds"""

    SMA = "SMA"
    EMA = "EMA"
    RSI = "RSI"
    MACD = "MACD"
    BOLLINGER = "BOLLINGER"
    SUPPORT_RESISTANCE = "SUPPORT_RESISTANCE"
    VOLATILITY = "VOLATILITY"
    CORRELATION = "CORRELATION"
    BETA = "BETA"
    SHARPE = "SHARPE"
    VAR = "VAR"
    MAX_DRAWDOWN = "MAX_DRAWDOWN"
    PRICE_CHANGE = "PRICE_CHANGE"
    PERFORMANCE = "PERFORMANCE"


# ============================================
# PARAMETERS (one model per kind)
# ============================================


class MetricParams(BaseModel):
    """Base class for kind-specific parameter sets"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def benchmark_symbol(self) -> str | None:
        """Benchmark symbol this parameter set depends on (if any)"""
        return None


class SmaParams(MetricParams):
    period: int = Field(default=20, gt=0)


class EmaParams(MetricParams):
    period: int = Field(default=20, gt=0)


class RsiParams(MetricParams):
    period: int = Field(default=14, gt=0)


class MacdParams(MetricParams):
    fast: int = Field(default=12, gt=0)
    slow: int = Field(default=26, gt=0)
    signal: int = Field(default=9, gt=0)

    @model_validator(mode="after")
    def fast_below_slow(self) -> "MacdParams":
        if self.fast >= self.slow:
            raise ValueError(f"fast period ({self.fast}) must be below slow period ({self.slow})")
        return self


class BollingerParams(MetricParams):
    period: int = Field(default=20, gt=0)
    std_dev_multiplier: float = Field(default=2.0, gt=0)


class SupportResistanceParams(MetricParams):
    lookback: int = Field(default=90, gt=0)
    pivot_width: int = Field(default=2, gt=0)
    max_levels: int = Field(default=5, gt=0)

    @model_validator(mode="after")
    def lookback_covers_pivot(self) -> "SupportResistanceParams":
        window = 2 * self.pivot_width + 1
        if self.lookback < window:
            raise ValueError(
                f"lookback ({self.lookback}) must cover a full pivot window ({window} bars)"
            )
        return self


class VolatilityParams(MetricParams):
    window: int = Field(default=252, gt=1)


class BenchmarkParams(MetricParams):
    benchmark: str
    window: int = Field(default=252, gt=1)

    @field_validator("benchmark")
    @classmethod
    def normalize_benchmark(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Benchmark symbol cannot be empty")
        return v

    @property
    def benchmark_symbol(self) -> str | None:
        return self.benchmark


class CorrelationParams(BenchmarkParams):
    pass


class BetaParams(BenchmarkParams):
    pass


class SharpeParams(MetricParams):
    window: int = Field(default=252, gt=1)
    risk_free_rate: float | None = Field(
        default=None, description="Annual risk-free rate; falls back to configuration"
    )


class VarParams(MetricParams):
    confidence: float = Field(default=0.95, gt=0, lt=1)
    window: int = Field(default=252, gt=1)
    position_value: float = Field(default=1.0, gt=0)


class MaxDrawdownParams(MetricParams):
    window: int = Field(default=252, gt=1)


class PriceChangeParams(MetricParams):
    vwap_window: int = Field(default=1, gt=0)


class PerformanceParams(MetricParams):
    pass


PARAMS_BY_KIND: dict[MetricKind, type[MetricParams]] = {
    MetricKind.SMA: SmaParams,
    MetricKind.EMA: EmaParams,
    MetricKind.RSI: RsiParams,
    MetricKind.MACD: MacdParams,
    MetricKind.BOLLINGER: BollingerParams,
    MetricKind.SUPPORT_RESISTANCE: SupportResistanceParams,
    MetricKind.VOLATILITY: VolatilityParams,
    MetricKind.CORRELATION: CorrelationParams,
    MetricKind.BETA: BetaParams,
    MetricKind.SHARPE: SharpeParams,
    MetricKind.VAR: VarParams,
    MetricKind.MAX_DRAWDOWN: MaxDrawdownParams,
    MetricKind.PRICE_CHANGE: PriceChangeParams,
    MetricKind.PERFORMANCE: PerformanceParams,
}


def build_params(kind: MetricKind | str, params: dict[str, Any] | MetricParams | None = None) -> MetricParams:
    """
    Validate raw parameters into the kind-specific model

    Raises:
        InvalidParametersError: Unknown kind, unknown field or invalid value
    """
    try:
        kind = MetricKind(kind)
    except ValueError as e:
        available = ", ".join(k.value for k in MetricKind)
        raise InvalidParametersError(f"Unknown metric kind: {kind}. Available: {available}") from e

    params_cls = PARAMS_BY_KIND[kind]
    if isinstance(params, params_cls):
        return params
    if isinstance(params, MetricParams):
        params = params.model_dump()

    try:
        return params_cls(**(params or {}))
    except ValidationError as e:
        raise InvalidParametersError(f"Invalid parameters for {kind.value}: {e}") from e


# ============================================
# KEYS
# ============================================


class MetricKey(BaseModel):
    """
    Identity of one cached result

    Hashable: used as dict key by the cache and the engine state map.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    kind: MetricKind
    params: SerializeAsAny[MetricParams]

    @model_validator(mode="before")
    @classmethod
    def coerce_params(cls, data: Any) -> Any:
        # Rebuild the kind-specific params model (e.g. after JSON round trip)
        if isinstance(data, dict) and "kind" in data:
            data = dict(data)
            data["params"] = build_params(data["kind"], data.get("params"))
        return data

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Symbol cannot be empty")
        return v

    @classmethod
    def create(
        cls,
        symbol: str,
        kind: MetricKind | str,
        params: dict[str, Any] | MetricParams | None = None,
    ) -> "MetricKey":
        """
        Build a key from raw input

        Raises:
            InvalidParametersError: If kind, params or symbol are invalid

        Example:
            >>> MetricKey.create("aapl", "EMA", {"period": 12}).cache_key
            'EMA:AAPL:period=12'
        """
        built = build_params(kind, params)
        try:
            return cls(symbol=symbol, kind=MetricKind(kind), params=built)
        except ValidationError as e:
            raise InvalidParametersError(f"Invalid metric key: {e}") from e

    @property
    def tags(self) -> frozenset[str]:
        """Invalidation tags: the symbol plus any benchmark it depends on"""
        benchmark = self.params.benchmark_symbol
        return frozenset({self.symbol, benchmark}) if benchmark else frozenset({self.symbol})

    @property
    def cache_key(self) -> str:
        """Flat string form: KIND:SYMBOL:param=value,..."""
        params_str = ",".join(
            f"{k}={v}" for k, v in self.params.model_dump().items() if v is not None
        )
        return f"{self.kind.value}:{self.symbol}:{params_str}"

    def __repr__(self) -> str:
        return f"MetricKey({self.cache_key})"


# ============================================
# VALUES
# ============================================


class MacdValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    macd: float
    signal: float
    histogram: float


class BollingerValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    upper: float
    middle: float
    lower: float
    width: float = Field(description="(upper - lower) / middle, in percent")


class PivotLevel(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    price: float
    side: Literal["high", "low"]


class SupportResistanceValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    support: list[float] = Field(description="Most recent pivot lows, newest first")
    resistance: list[float] = Field(description="Most recent pivot highs, newest first")
    pivots: list[PivotLevel] = Field(description="All reported pivots, newest first")


class ValueAtRiskValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    value_at_risk: float = Field(description="Loss at the confidence level (positive = loss)")
    confidence: float
    method: Literal["historical", "parametric"]
    observations: int
    position_value: float


class PriceChangeValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    close: float
    previous_close: float
    price_change: float
    change_percent: float
    gap_percent: float
    day_high: float
    day_low: float
    vwap: float


class PerformanceValue(BaseModel):
    """Percent returns per period (None when history does not reach back far enough)"""

    model_config = ConfigDict(frozen=True)

    one_day: float | None
    one_week: float | None
    one_month: float | None
    three_month: float | None
    six_month: float | None
    one_year: float | None
    year_to_date: float | None
    fifty_two_week_high: float
    fifty_two_week_low: float


class EmaFanValue(BaseModel):
    """
    EMA fan alignment of one symbol (e.g. EMA18 > EMA50 > EMA100 > EMA200)

    score counts the consecutive orderings satisfied from the shortest
    period onwards; a missing EMA scores 0.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    latest_price: float | None
    emas: dict[int, float | None] = Field(description="EMA value per period (None = not enough history)")
    score: int = Field(ge=0)
    is_perfect: bool
    fan_strength: float | None = Field(
        default=None, description="Mean percent spacing between adjacent EMAs (perfect fans only)"
    )
    as_of: datetime | None = None


class EmaFanSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_analyzed: int
    perfect_count: int
    perfect_percentage: float
    score_distribution: dict[int, int]
    average_fan_strength: float


MetricValue = Union[
    float,
    MacdValue,
    BollingerValue,
    SupportResistanceValue,
    ValueAtRiskValue,
    PriceChangeValue,
    PerformanceValue,
]


# ============================================
# RESULTS & EVENTS
# ============================================


class MetricResult(BaseModel):
    """
    Immutable computed metric snapshot

    A new bar produces a new MetricResult replacing the cached one.
    """

    model_config = ConfigDict(frozen=True)

    key: MetricKey
    value: MetricValue
    as_of: datetime = Field(description="Timestamp of the newest bar used")
    computed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    stale: bool = Field(default=False, description="Newer data exists; recompute pending")

    def mark_stale(self) -> "MetricResult":
        """Copy of this result flagged stale"""
        if self.stale:
            return self
        return self.model_copy(update={"stale": True})


class MetricsUpdated(BaseModel):
    """Change notification for one symbol"""

    model_config = ConfigDict(frozen=True)

    symbol: str
    updated_keys: list[MetricKey] = Field(default_factory=list)
    stale_keys: list[MetricKey] = Field(default_factory=list)
    as_of: datetime
    published_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
