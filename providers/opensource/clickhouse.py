"""
ClickHouse implementation of the bar store

Read-only access to daily OHLCV bars. The import pipeline owns the table;
the analytics engine only queries it.
"""

import logging
from datetime import datetime
from typing import Any

from clickhouse_driver import Client

from config.settings import get_settings
from core.interfaces.store import BaseBarStore
from core.models.market_data import Bar

logger = logging.getLogger(__name__)

BAR_COLUMNS = "symbol, timestamp, open, high, low, close, volume"


class ClickHouseBarStore(BaseBarStore):
    """
    ClickHouse implementation

    Expected table (ReplacingMergeTree ordered by (symbol, timestamp)):
        symbol String, timestamp DateTime64(3, 'UTC'),
        open/high/low/close Float64, volume Float64

    FINAL collapses re-imported rows so each (symbol, timestamp) is read once.
    """

    def __init__(self):
        self.settings = get_settings()
        self.client: Client | None = None
        self.table = f"{self.settings.CLICKHOUSE_DB}.{self.settings.CLICKHOUSE_BARS_TABLE}"

    async def connect(self) -> None:
        """Establish connection to ClickHouse"""
        try:
            self.client = Client(
                host=self.settings.CLICKHOUSE_HOST,
                port=self.settings.CLICKHOUSE_PORT,
                database=self.settings.CLICKHOUSE_DB,
                user=self.settings.CLICKHOUSE_USER,
                password=self.settings.CLICKHOUSE_PASSWORD,
            )
            # Test connection
            self.client.execute("SELECT 1")
            logger.info(
                f"✓ Connected to ClickHouse: "
                f"{self.settings.CLICKHOUSE_HOST}:{self.settings.CLICKHOUSE_PORT} ({self.table})"
            )
        except Exception as e:
            logger.error(f"✗ Failed to connect to ClickHouse: {e}")
            raise

    async def get_bars(
        self,
        symbol: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Bar]:
        """
        Query bars in an inclusive time range

        Example:
            >>> bars = await store.get_bars("AAPL", start=datetime(2024, 1, 1, tzinfo=UTC))
        """
        conditions = ["symbol = %(symbol)s"]
        params: dict[str, Any] = {"symbol": symbol.upper()}
        if start is not None:
            conditions.append("timestamp >= %(start)s")
            params["start"] = start
        if end is not None:
            conditions.append("timestamp <= %(end)s")
            params["end"] = end

        query = f"""
            SELECT {BAR_COLUMNS}
            FROM {self.table} FINAL
            WHERE {" AND ".join(conditions)}
            ORDER BY timestamp ASC
        """
        return self._to_bars(self._execute(query, params))

    async def get_latest_bars(self, symbol: str, n: int) -> list[Bar]:
        """Query the most recent N bars (returned oldest first)"""
        if n <= 0:
            return []

        query = f"""
            SELECT {BAR_COLUMNS}
            FROM {self.table} FINAL
            WHERE symbol = %(symbol)s
            ORDER BY timestamp DESC
            LIMIT %(limit)s
        """
        rows = self._execute(query, {"symbol": symbol.upper(), "limit": n})
        return self._to_bars(reversed(rows))

    def _execute(self, query: str, params: dict[str, Any]) -> list[tuple]:
        if not self.client:
            raise RuntimeError("ClickHouse client not connected")

        try:
            return self.client.execute(query, params)
        except Exception as e:
            logger.error(f"✗ ClickHouse query error: {e}")
            raise

    @staticmethod
    def _to_bars(rows) -> list[Bar]:
        return [
            Bar(
                symbol=row[0],
                timestamp=row[1],
                open=float(row[2]),
                high=float(row[3]),
                low=float(row[4]),
                close=float(row[5]),
                volume=float(row[6]),
            )
            for row in rows
        ]

    async def close(self) -> None:
        """Close connection"""
        if self.client:
            self.client.disconnect()
            logger.info("✓ ClickHouse connection closed")
