"""
Market data models

Pydantic models for market data structures:
- Bar: one trading period's OHLCV for a symbol
"""

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Bar(BaseModel):
    """
    OHLCV bar

    Aggregated price data for one exchange trading day (UTC).
    Immutable once ingested.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(description="Equity symbol (AAPL, MSFT)")
    timestamp: datetime = Field(description="Bar timestamp (UTC, trading-day granularity)")
    open: float = Field(gt=0, description="Opening price")
    high: float = Field(gt=0, description="Highest price in period")
    low: float = Field(gt=0, description="Lowest price in period")
    close: float = Field(gt=0, description="Closing price")
    volume: float = Field(default=0.0, ge=0, description="Total volume traded")

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Symbol cannot be empty")
        return v

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        # Naive timestamps are treated as UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v.astimezone(UTC)

    @model_validator(mode="after")
    def check_price_range(self) -> "Bar":
        if not (self.low <= self.open <= self.high and self.low <= self.close <= self.high):
            raise ValueError(
                f"Bar prices out of range: low={self.low} open={self.open} "
                f"close={self.close} high={self.high}"
            )
        return self

    @property
    def typical_price(self) -> float:
        """(High + Low + Close) / 3"""
        return (self.high + self.low + self.close) / 3

    def to_dict(self) -> dict:
        """Convert to dictionary for transport"""
        return {
            "symbol": self.symbol,
            "timestamp": self.timestamp.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }
