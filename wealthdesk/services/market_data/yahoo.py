# wealthdesk/services/market_data/yahoo.py
"""
Yahoo Finance market data provider implementation.

This module implements the MarketDataProvider interface using the yfinance library.
Yahoo Finance is a free data source suitable for personal/educational use.

Symbols:
- Domestic listings already carry Yahoo's suffix (005930.KS, 035720.KQ)
- Foreign tickers are used as-is (AAPL, QQQ)
- FX pairs use Yahoo's "{BASE}{QUOTE}=X" symbol (USDKRW=X)

Limitations:
- Rate limits (not officially documented, but exist)
- Data may be delayed (15-20 minutes for some markets)
"""

import logging
import math
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

import yfinance as yf

from wealthdesk.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
    TickerNotFoundError,
)
from wealthdesk.services.market_data.base import (
    DailyClose,
    HistoricalPricesResult,
    MarketDataProvider,
)

logger = logging.getLogger(__name__)


class YahooFinanceProvider(MarketDataProvider):
    """
    Yahoo Finance implementation of MarketDataProvider.

    Configuration:
        timeout: API request timeout in seconds (default: 10)

    Retry Behavior (inherited from MarketDataProvider):
        - Retries on ProviderUnavailableError and RateLimitError
        - Does NOT retry on TickerNotFoundError (permanent failure)
        - Uses exponential backoff: 1s → 2s → 4s

    Example:
        provider = YahooFinanceProvider(timeout=15)

        prices = provider.get_historical_prices(
            "005930.KS", date(2024, 1, 1), date(2024, 12, 31)
        )
        fx = provider.get_fx_history("USD", "KRW", date(2024, 1, 1), date(2024, 12, 31))
    """

    def __init__(self, timeout: int = 10) -> None:
        self._timeout = timeout
        logger.info(f"YahooFinanceProvider initialized (timeout={timeout}s)")

    @property
    def name(self) -> str:
        return "yahoo"

    # =========================================================================
    # PRICE HISTORY
    # =========================================================================

    def get_historical_prices(
            self,
            ticker: str,
            start_date: date,
            end_date: date,
    ) -> HistoricalPricesResult:
        """
        Fetch daily closes from Yahoo Finance.

        Raises:
            TickerNotFoundError: If ticker not found
            ProviderUnavailableError: If Yahoo Finance unavailable
        """
        ticker = ticker.strip().upper()
        return self._execute_with_retry(
            self._fetch_history,
            ticker,
            ticker,
            start_date,
            end_date,
        )

    def get_fx_history(
            self,
            base_currency: str,
            quote_currency: str,
            start_date: date,
            end_date: date,
    ) -> HistoricalPricesResult:
        """
        Fetch daily FX closes "1 base = rate quote" (e.g. USDKRW=X).

        Raises:
            TickerNotFoundError: If the pair is unknown
            ProviderUnavailableError: If Yahoo Finance unavailable
        """
        symbol = self.fx_symbol(base_currency, quote_currency)
        return self._execute_with_retry(
            self._fetch_history,
            symbol,
            symbol,
            start_date,
            end_date,
        )

    @staticmethod
    def fx_symbol(base_currency: str, quote_currency: str) -> str:
        return f"{base_currency.strip().upper()}{quote_currency.strip().upper()}=X"

    def _fetch_history(
            self,
            ticker: str,
            yahoo_symbol: str,
            start_date: date,
            end_date: date,
    ) -> HistoricalPricesResult:
        """Internal method to fetch a daily close history."""
        logger.debug(
            f"Fetching history for {yahoo_symbol}: {start_date} to {end_date}"
        )

        result = HistoricalPricesResult(
            ticker=ticker,
            from_date=start_date,
            to_date=end_date,
        )

        try:
            yf_ticker = yf.Ticker(yahoo_symbol)

            # Yahoo Finance end date is exclusive, so add 1 day
            yahoo_end = end_date + timedelta(days=1)

            df = yf_ticker.history(
                start=start_date.isoformat(),
                end=yahoo_end.isoformat(),
                interval="1d",
                auto_adjust=False,
                timeout=self._timeout,
            )

            if df.empty:
                info = yf_ticker.info
                if not self._is_valid_ticker_info(info):
                    raise TickerNotFoundError(ticker=ticker, provider=self.name)

                # Ticker exists but no data for this range
                logger.warning(
                    f"No price data for {yahoo_symbol} between {start_date} and {end_date}"
                )
                return result

            prices = self._dataframe_to_closes(df)
            result.prices = prices
            if prices:
                result.actual_from_date = min(p.date for p in prices)
                result.actual_to_date = max(p.date for p in prices)

            logger.debug(f"Fetched {len(prices)} days for {yahoo_symbol}")
            return result

        except TickerNotFoundError:
            raise
        except Exception as e:
            error_str = str(e).lower()

            if "not found" in error_str or "no data" in error_str:
                raise TickerNotFoundError(ticker=ticker, provider=self.name)

            if "rate limit" in error_str or "too many requests" in error_str:
                raise RateLimitError(provider=self.name)

            logger.error(f"Yahoo Finance error for {yahoo_symbol}: {e}")
            raise ProviderUnavailableError(provider=self.name, reason=str(e))

    def _dataframe_to_closes(self, df) -> list[DailyClose]:
        """
        Convert a yfinance history DataFrame to daily closes.

        Rows with a missing or non-positive close are skipped.
        """
        prices = []

        for idx, row in df.iterrows():
            price_date = idx.date() if hasattr(idx, 'date') else idx
            close_price = self._to_decimal(row.get('Close'))

            if close_price is None or close_price <= 0:
                logger.warning(f"Skipping {price_date}: missing close price")
                continue

            prices.append(DailyClose(date=price_date, close=close_price))

        return prices

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        """Convert a value to Decimal, returning None for NaN/None."""
        if value is None:
            return None
        try:
            if math.isnan(float(value)):
                return None
            return Decimal(str(value)).quantize(Decimal("0.00000001"))
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _is_valid_ticker_info(info: dict | None) -> bool:
        """
        Yahoo returns an info dict even for invalid tickers, but it lacks
        meaningful data. We check for price or name to validate.
        """
        if not info:
            return False
        return bool(
            info.get("regularMarketPrice")
            or info.get("shortName")
            or info.get("longName")
        )
