"""
Polygon.io aggregates client.

Fetches intraday OHLCV bars and returns them in the DataFrame layout consumed
by compute_indicators() / detect_divergences().
"""

import logging
import os
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import pandas as pd
import requests

from .config import API_KEY_ENV_VAR, Config
from .models import BAR_COLUMNS

logger = logging.getLogger(__name__)

# Polygon aggregate field -> bar column
FIELD_MAPPING = {
    'o': 'open',
    'h': 'high',
    'l': 'low',
    'c': 'close',
    'v': 'volume',
    't': 'timestamp'
}


class PolygonDataFetcher:
    """
    Data fetcher for the Polygon.io v2 aggregates API
    """

    def __init__(self, api_key: str, session: Optional[requests.Session] = None,
                 settings: Optional[Dict[str, Any]] = None):
        """
        Initialize Polygon data fetcher

        Args:
            api_key: Polygon.io API key
            session: HTTP session (a new requests.Session by default)
            settings: overrides for Config.POLYGON
        """
        if not api_key:
            raise ValueError("Polygon API key is required")

        self.api_key = api_key
        self.session = session or requests.Session()

        self.settings = dict(Config.POLYGON)
        if settings:
            self.settings.update(settings)

        self.base_url = self.settings['base_url'].rstrip('/')

        # Rate limiting, shared by every thread using this fetcher
        self.last_request_time = 0.0
        self.min_request_interval = self.settings['min_request_interval']
        self._rate_limit_lock = threading.Lock()

    def _wait_for_rate_limit(self):
        """Ensure we don't exceed rate limits"""
        with self._rate_limit_lock:
            current_time = time.time()
            time_since_last = current_time - self.last_request_time
            if time_since_last < self.min_request_interval:
                time.sleep(self.min_request_interval - time_since_last)
            self.last_request_time = time.time()

    def _make_request(self, endpoint: str, params: Dict[str, Any]) -> requests.Response:
        """GET with rate limiting, retries and exponential backoff"""
        url = f"{self.base_url}{endpoint}"
        params = dict(params, apiKey=self.api_key)
        max_retries = self.settings['max_retries']
        retry_count = 0

        while True:
            self._wait_for_rate_limit()
            try:
                response = self.session.get(url, params=params, timeout=self.settings['timeout'])

                if response.status_code == 429:
                    retry_count += 1
                    if retry_count >= max_retries:
                        response.raise_for_status()
                    logger.warning("⏰ Rate limited by Polygon, increasing delay and retrying...")
                    with self._rate_limit_lock:
                        self.min_request_interval *= 1.5
                        backoff = self.min_request_interval
                    time.sleep(backoff)
                    continue

                response.raise_for_status()
                return response

            except requests.exceptions.RequestException as e:
                status_code = getattr(getattr(e, 'response', None), 'status_code', None)

                # Client errors other than rate limiting will not succeed on retry
                if status_code is not None and 400 <= status_code < 500 and status_code != 429:
                    logger.error(f"❌ Polygon request failed ({status_code}): {e}")
                    raise

                retry_count += 1
                if retry_count >= max_retries:
                    logger.error(f"❌ Max retries ({max_retries}) exceeded: {e}")
                    raise

                wait_time = 2 ** retry_count
                logger.warning(
                    f"⚠️  Polygon request failed (attempt {retry_count}): {e}. "
                    f"Retrying in {wait_time} seconds..."
                )
                time.sleep(wait_time)

    def build_endpoint(self, symbol: str, multiplier: int, timespan: str,
                       now: Optional[datetime] = None) -> str:
        """Aggregates path for the configured lookback window ending today (UTC)."""
        now = now or datetime.now(timezone.utc)
        start = now - timedelta(days=self.settings['lookback_days'])
        return (
            f"/v2/aggs/ticker/{symbol}/range/{multiplier}/{timespan}/"
            f"{start.strftime('%Y-%m-%d')}/{now.strftime('%Y-%m-%d')}"
        )

    def fetch_bars(self, symbol: str, multiplier: int = 5, timespan: str = 'minute',
                   now: Optional[datetime] = None) -> pd.DataFrame:
        """
        Fetch recent aggregate bars for a symbol.

        Args:
            symbol: Ticker, e.g. 'SPY'
            multiplier: Bar size in ``timespan`` units
            timespan: Polygon timespan ('minute', 'hour', 'day')

        Returns:
            DataFrame with open/high/low/close/volume/timestamp columns in
            ascending time order; empty when no data is available or the
            request failed.
        """
        endpoint = self.build_endpoint(symbol, multiplier, timespan, now)
        params = {
            'adjusted': 'true',
            'sort': 'asc',
            'limit': self.settings['limit']
        }

        try:
            response = self._make_request(endpoint, params)
            payload = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.error(f"❌ Error fetching {symbol}: {e}")
            return pd.DataFrame(columns=BAR_COLUMNS)

        results = payload.get('results') or []
        if not results:
            logger.info(f"No bars returned for {symbol} (status={payload.get('status')})")
            return pd.DataFrame(columns=BAR_COLUMNS)

        df = pd.DataFrame(results).rename(columns=FIELD_MAPPING)
        missing = set(BAR_COLUMNS) - set(df.columns)
        if missing:
            logger.error(f"❌ Polygon response for {symbol} missing fields: {sorted(missing)}")
            return pd.DataFrame(columns=BAR_COLUMNS)

        df = df[BAR_COLUMNS].sort_values('timestamp', kind='stable').reset_index(drop=True)
        df['timestamp'] = df['timestamp'].astype('int64')

        logger.debug(f"Fetched {len(df)} bars for {symbol} ({multiplier} {timespan})")
        return df


def create_polygon_fetcher() -> Optional[PolygonDataFetcher]:
    """
    Create a PolygonDataFetcher instance using the POLYGON_API_KEY environment variable.

    Returns:
        PolygonDataFetcher instance if the key is available, None otherwise
    """
    api_key = os.getenv(API_KEY_ENV_VAR)
    if not api_key:
        return None
    return PolygonDataFetcher(api_key=api_key)
