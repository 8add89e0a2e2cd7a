"""
Scanner Configuration

Single source of truth for indicator, divergence and scanner settings.
Secrets (the Polygon API key) live in the environment / .env file.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv, set_key, unset_key

logger = logging.getLogger(__name__)

API_KEY_ENV_VAR = 'POLYGON_API_KEY'
CONFIG_PATH_ENV_VAR = 'CCI_SCANNER_CONFIG'
DEFAULT_ENV_PATH = Path.cwd() / '.env'


class Config:
    """
    Main configuration class containing all scanner parameters.
    """

    # ===========================================
    # INDICATOR
    # ===========================================

    CCI = {
        'period': 20,               # CCI lookback
        'fast_smoothing': 5         # First EMA pass (second pass is fixed at 2)
    }

    # ===========================================
    # DIVERGENCE DETECTION
    # ===========================================

    PIVOTS = {
        'lookback_left': 5,         # Bars left of a pivot that must be beaten
        'lookback_right': 5         # Bars right of a pivot that must be beaten
    }

    DIVERGENCE = {
        'min_strength': 3.0,        # Drop divergences scoring below this
        'min_pivot_gap': 5,         # Pivots closer than this are noise
        'max_pivot_gap': 60,        # Pivots further apart than this are stale
        'volume_multiplier': 1.2,   # Volume > 1.2x average confirms
        'extreme_level': 100.0,     # |CCI| beyond this earns the extreme bonus
        'recent_bars': 15           # Only report divergences in the last N bars
    }

    # ===========================================
    # SCANNER
    # ===========================================

    SCANNER = {
        'watchlist': [
            'SPY', 'QQQ', 'IWM', 'DIA',
            'TQQQ', 'SQQQ',
            'NVDA', 'AMD', 'TSLA', 'AAPL', 'MSFT', 'META', 'GOOGL', 'AMZN',
            'XLF', 'XLE', 'XLK',
        ],
        'timeframe': '5',           # Minutes per bar: '5', '15' or '60'
        'min_bars': 50,             # Skip symbols with less history
        'max_workers': 4,           # Symbols fetched/analyzed in parallel
        'request_delay': 0.15,      # Pause after each symbol (rate limiting)
        'refresh_seconds': 60       # Auto-refresh interval in watch mode
    }

    # ===========================================
    # POLYGON.IO BAR SOURCE
    # ===========================================

    POLYGON = {
        'base_url': 'https://api.polygon.io',
        'lookback_days': 5,         # Calendar days of history per request
        'limit': 2000,              # Max bars per request
        'timeout': 30,              # Seconds
        'max_retries': 3,
        'min_request_interval': 0.1
    }

    @classmethod
    def get_indicator_params(cls) -> Dict[str, Any]:
        """Keyword arguments for compute_indicators()."""
        return dict(cls.CCI)

    @classmethod
    def get_divergence_params(cls) -> Dict[str, Any]:
        """Keyword arguments for detect_divergences() minus min_strength."""
        params = dict(cls.PIVOTS)
        params.update({k: v for k, v in cls.DIVERGENCE.items() if k != 'min_strength'})
        return params

    @classmethod
    def to_dict(cls) -> Dict[str, Any]:
        return {
            'CCI': copy.deepcopy(cls.CCI),
            'PIVOTS': copy.deepcopy(cls.PIVOTS),
            'DIVERGENCE': copy.deepcopy(cls.DIVERGENCE),
            'SCANNER': copy.deepcopy(cls.SCANNER),
            'POLYGON': copy.deepcopy(cls.POLYGON),
        }


SECTIONS = ('CCI', 'PIVOTS', 'DIVERGENCE', 'SCANNER', 'POLYGON')


def load_config(config_path: Optional[Union[str, Path]] = None) -> type:
    """
    Build a Config subclass with JSON overrides merged over the defaults.

    The path defaults to the CCI_SCANNER_CONFIG environment variable; with no
    path the defaults are returned unchanged.

    Raises:
        FileNotFoundError: if the override file does not exist
        ValueError: on invalid JSON, unknown sections or unknown keys
    """
    config_path = config_path or os.getenv(CONFIG_PATH_ENV_VAR)
    if not config_path:
        return Config

    config_path = Path(config_path)
    try:
        with open(config_path, 'r') as f:
            overrides = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in configuration file: {e}")

    if not isinstance(overrides, dict):
        raise ValueError("Configuration file must contain a JSON object")

    merged = Config.to_dict()
    for section, values in overrides.items():
        if section not in SECTIONS:
            raise ValueError(f"Unknown configuration section: {section}")
        if not isinstance(values, dict):
            raise ValueError(f"Section {section} must be an object")
        unknown = set(values) - set(merged[section])
        if unknown:
            raise ValueError(f"Unknown keys in {section}: {sorted(unknown)}")
        merged[section].update(values)

    logger.info(f"✅ Loaded configuration overrides from {config_path}")
    return type('CustomConfig', (Config,), merged)


def get_api_key(env_path: Optional[Union[str, Path]] = None) -> Optional[str]:
    """Return the Polygon API key from the environment (after loading .env)."""
    load_dotenv(dotenv_path=env_path or DEFAULT_ENV_PATH)
    api_key = os.getenv(API_KEY_ENV_VAR)
    return api_key.strip() if api_key and api_key.strip() else None


def save_api_key(api_key: str, env_path: Optional[Union[str, Path]] = None) -> Path:
    """Persist the API key to the .env file and the current environment."""
    api_key = api_key.strip()
    if not api_key:
        raise ValueError("API key must not be empty")

    env_path = Path(env_path or DEFAULT_ENV_PATH)
    env_path.touch(exist_ok=True)
    set_key(str(env_path), API_KEY_ENV_VAR, api_key)
    os.environ[API_KEY_ENV_VAR] = api_key
    logger.info(f"🔑 Saved API key to {env_path}")
    return env_path


def clear_api_key(env_path: Optional[Union[str, Path]] = None) -> None:
    """Remove the API key from the .env file and the current environment."""
    env_path = Path(env_path or DEFAULT_ENV_PATH)
    if env_path.exists():
        unset_key(str(env_path), API_KEY_ENV_VAR)
    os.environ.pop(API_KEY_ENV_VAR, None)
    logger.info(f"🔑 Removed API key from {env_path}")
