#!/usr/bin/env python3
"""
Tests for configuration defaults, JSON overrides and API key persistence.
"""

import json
import os
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cci_divergence.config import (
    API_KEY_ENV_VAR,
    Config,
    clear_api_key,
    get_api_key,
    load_config,
    save_api_key
)


def test_default_parameters():
    assert Config.get_indicator_params() == {'period': 20, 'fast_smoothing': 5}

    params = Config.get_divergence_params()
    assert 'min_strength' not in params
    assert params['lookback_left'] == 5
    assert params['lookback_right'] == 5
    assert params['min_pivot_gap'] == 5
    assert params['max_pivot_gap'] == 60
    assert params['volume_multiplier'] == 1.2
    assert params['recent_bars'] == 15


def test_load_config_without_overrides(monkeypatch):
    monkeypatch.delenv('CCI_SCANNER_CONFIG', raising=False)
    assert load_config() is Config


def test_load_config_merges_overrides(tmp_path):
    path = tmp_path / 'scanner.json'
    path.write_text(json.dumps({
        'DIVERGENCE': {'recent_bars': 30},
        'SCANNER': {'watchlist': ['SPY']}
    }))

    config = load_config(path)

    assert config.DIVERGENCE['recent_bars'] == 30
    assert config.DIVERGENCE['max_pivot_gap'] == 60
    assert config.SCANNER['watchlist'] == ['SPY']
    assert config.get_divergence_params()['recent_bars'] == 30
    # Defaults untouched
    assert Config.DIVERGENCE['recent_bars'] == 15


def test_load_config_from_env(tmp_path, monkeypatch):
    path = tmp_path / 'scanner.json'
    path.write_text(json.dumps({'CCI': {'period': 14}}))
    monkeypatch.setenv('CCI_SCANNER_CONFIG', str(path))
    assert load_config().CCI['period'] == 14


def test_load_config_rejects_bad_files(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / 'missing.json')

    bad_json = tmp_path / 'bad.json'
    bad_json.write_text('{not json')
    with pytest.raises(ValueError):
        load_config(bad_json)

    unknown_section = tmp_path / 'section.json'
    unknown_section.write_text(json.dumps({'TELEGRAM': {}}))
    with pytest.raises(ValueError):
        load_config(unknown_section)

    unknown_key = tmp_path / 'key.json'
    unknown_key.write_text(json.dumps({'CCI': {'length': 10}}))
    with pytest.raises(ValueError):
        load_config(unknown_key)


def test_api_key_persistence(tmp_path, monkeypatch):
    monkeypatch.delenv(API_KEY_ENV_VAR, raising=False)
    env_path = tmp_path / '.env'

    assert get_api_key(env_path) is None

    save_api_key('  my-key  ', env_path)
    assert 'my-key' in env_path.read_text()
    assert os.environ[API_KEY_ENV_VAR] == 'my-key'

    monkeypatch.delenv(API_KEY_ENV_VAR)
    assert get_api_key(env_path) == 'my-key'

    clear_api_key(env_path)
    assert API_KEY_ENV_VAR not in os.environ
    assert 'my-key' not in env_path.read_text()
    assert get_api_key(env_path) is None


def test_save_api_key_rejects_blank(tmp_path):
    with pytest.raises(ValueError):
        save_api_key('   ', tmp_path / '.env')
