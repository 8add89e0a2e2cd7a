#!/usr/bin/env python3
"""
Tests for the Polygon.io bar source using a stub HTTP session.
"""

import sys
import threading
import time
from datetime import datetime, timezone
from pathlib import Path

import pytest
import requests

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cci_divergence.config import Config
from cci_divergence.models import BAR_COLUMNS
from cci_divergence.polygon_fetcher import PolygonDataFetcher, create_polygon_fetcher
from cci_divergence.scanner import DivergenceScanner

FAST_SETTINGS = {'min_request_interval': 0, 'max_retries': 1}


class StubResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self.payload = payload or {}

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        return self.payload


class StubSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        return self.responses.pop(0)


def test_fetch_bars_maps_and_sorts_results():
    payload = {
        'status': 'OK',
        'results': [
            {'o': 2.0, 'h': 3.0, 'l': 1.5, 'c': 2.5, 'v': 200, 't': 1_700_000_300_000, 'n': 5},
            {'o': 1.0, 'h': 2.0, 'l': 0.5, 'c': 1.5, 'v': 100, 't': 1_700_000_000_000, 'n': 3},
        ]
    }
    session = StubSession([StubResponse(200, payload)])
    fetcher = PolygonDataFetcher('secret', session=session, settings=FAST_SETTINGS)

    df = fetcher.fetch_bars('SPY', multiplier=15, timespan='minute',
                            now=datetime(2024, 3, 10, tzinfo=timezone.utc))

    assert list(df.columns) == BAR_COLUMNS
    assert df['timestamp'].tolist() == [1_700_000_000_000, 1_700_000_300_000]
    assert df['close'].tolist() == [1.5, 2.5]

    url, params, timeout = session.requests[0]
    assert url == 'https://api.polygon.io/v2/aggs/ticker/SPY/range/15/minute/2024-03-05/2024-03-10'
    assert params['apiKey'] == 'secret'
    assert params['sort'] == 'asc'
    assert params['adjusted'] == 'true'
    assert params['limit'] == 2000
    assert timeout == 30


def test_fetch_bars_without_results_is_empty():
    session = StubSession([StubResponse(200, {'status': 'OK', 'resultsCount': 0})])
    fetcher = PolygonDataFetcher('secret', session=session, settings=FAST_SETTINGS)

    df = fetcher.fetch_bars('SPY')
    assert df.empty
    assert list(df.columns) == BAR_COLUMNS


def test_client_error_is_not_retried():
    session = StubSession([StubResponse(404), StubResponse(200)])
    fetcher = PolygonDataFetcher('secret', session=session,
                                 settings={'min_request_interval': 0, 'max_retries': 3})

    df = fetcher.fetch_bars('NOPE')
    assert df.empty
    assert len(session.requests) == 1


def test_server_error_gives_up_after_max_retries():
    session = StubSession([StubResponse(500)])
    fetcher = PolygonDataFetcher('secret', session=session, settings=FAST_SETTINGS)

    assert fetcher.fetch_bars('SPY').empty
    assert len(session.requests) == 1


def test_rate_limit_gives_up_after_max_retries():
    session = StubSession([StubResponse(429)])
    fetcher = PolygonDataFetcher('secret', session=session, settings=FAST_SETTINGS)

    assert fetcher.fetch_bars('SPY').empty
    assert len(session.requests) == 1


def test_requires_api_key():
    with pytest.raises(ValueError):
        PolygonDataFetcher('')


def test_create_polygon_fetcher_from_env(monkeypatch):
    monkeypatch.delenv('POLYGON_API_KEY', raising=False)
    assert create_polygon_fetcher() is None

    monkeypatch.setenv('POLYGON_API_KEY', 'abc')
    fetcher = create_polygon_fetcher()
    assert fetcher is not None
    assert fetcher.api_key == 'abc'


class TimedSession:
    """Thread-safe session recording when each request went out."""

    def __init__(self):
        self.lock = threading.Lock()
        self.sent_at = []

    def get(self, url, params=None, timeout=None):
        with self.lock:
            self.sent_at.append(time.time())
        return StubResponse(200, {'status': 'OK', 'results': []})


def test_rate_limit_holds_across_scanner_threads():
    interval = 0.3
    session = TimedSession()
    fetcher = PolygonDataFetcher('secret', session=session,
                                 settings={'min_request_interval': interval, 'max_retries': 1})
    config = type('ThreadedConfig', (Config,), {
        'SCANNER': dict(Config.SCANNER, request_delay=0, max_workers=4)
    })
    scanner = DivergenceScanner(fetcher, config=config)

    scanner.scan(['SPY', 'QQQ', 'IWM', 'DIA'])

    sent = sorted(session.sent_at)
    assert len(sent) == 4
    gaps = [b - a for a, b in zip(sent, sent[1:])]
    assert all(gap >= interval - 0.05 for gap in gaps), gaps


def test_rate_limit_backoff_grows_interval():
    session = StubSession([StubResponse(429), StubResponse(200, {'status': 'OK', 'results': []})])
    fetcher = PolygonDataFetcher('secret', session=session,
                                 settings={'min_request_interval': 0.01, 'max_retries': 3})

    fetcher.fetch_bars('SPY')

    assert len(session.requests) == 2
    assert fetcher.min_request_interval == pytest.approx(0.015)
