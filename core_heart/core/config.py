#!/usr/bin/env python3
"""
Core Heart Configuration

One CoreHeartConfig is built at process start and handed to every store.
Nothing reads paths from module globals.

Base directory priority: explicit > CORE_HEART_DIR env var > auto-resolve
"""
import math
import os
from pathlib import Path
from typing import Optional, List, Dict


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() == 'true'


def resolve_core_heart_dir(cwd: Optional[Path] = None) -> Path:
    """
    Find the data root when nothing was configured.

    1. cwd itself if it is named core-heart
    2. cwd/core-heart if that directory exists
    3. cwd
    """
    cwd = Path(cwd or os.getcwd())
    if cwd.name.lower() == "core-heart":
        return cwd
    guess = cwd / "core-heart"
    if guess.is_dir():
        return guess
    return cwd


class CoreHeartConfig:
    """Configuration for the breath -> purify -> meeting -> central pipeline"""

    # Collection caps
    BREATH_LOG_CAP = 300
    CENTRAL_MEMORY_CAP = 500
    LEDGER_CAP = 10000

    # Read limits
    BREATH_RECENT_DEFAULT = 10
    INHALE_RECENT_DEFAULT = 30
    INHALE_RECENT_MAX = 100
    LEDGER_READ_DEFAULT = 200
    LEDGER_READ_MAX = 2000

    # Content filter
    FILTER_MAX_LENGTH = 2000
    FILTER_REPEAT_RUN = 8

    # Service
    SERVICE_HOST = '0.0.0.0'
    SERVICE_PORT = 4000
    LOG_LEVEL = 'INFO'
    DEBUG = False

    def __init__(self, base_dir=None, **overrides):
        if base_dir is not None:
            self.base_dir = Path(base_dir)
        elif os.getenv('CORE_HEART_DIR'):
            self.base_dir = Path(os.environ['CORE_HEART_DIR'])
        else:
            self.base_dir = resolve_core_heart_dir()

        self.breath_log_cap = _env_int('CORE_HEART_BREATH_CAP', self.BREATH_LOG_CAP)
        self.central_memory_cap = _env_int('CORE_HEART_CENTRAL_CAP', self.CENTRAL_MEMORY_CAP)
        self.ledger_cap = _env_int('CORE_HEART_LEDGER_CAP', self.LEDGER_CAP)

        self.breath_recent_default = self.BREATH_RECENT_DEFAULT
        self.inhale_recent_default = self.INHALE_RECENT_DEFAULT
        self.inhale_recent_max = self.INHALE_RECENT_MAX
        self.ledger_read_default = self.LEDGER_READ_DEFAULT
        self.ledger_read_max = _env_int('CORE_HEART_LEDGER_READ_MAX', self.LEDGER_READ_MAX)

        self.filter_max_length = _env_int('CORE_HEART_FILTER_MAX_LENGTH', self.FILTER_MAX_LENGTH)
        self.filter_repeat_run = _env_int('CORE_HEART_FILTER_REPEAT_RUN', self.FILTER_REPEAT_RUN)

        self.host = os.getenv('CORE_HEART_HOST', self.SERVICE_HOST)
        self.port = _env_int('PORT', self.SERVICE_PORT)
        self.log_level = os.getenv('CORE_HEART_LOG_LEVEL', self.LOG_LEVEL)
        self.debug = _env_bool('CORE_HEART_DEBUG', self.DEBUG)

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise TypeError(f"Unknown config option: {key}")
            setattr(self, key, value)

    # Paths ---------------------------------------------------------------

    @property
    def public_dir(self) -> Path:
        return self.base_dir / "public"

    @property
    def data_dir(self) -> Path:
        return self.public_dir / "data"

    @property
    def meetings_dir(self) -> Path:
        return self.base_dir / "meetings"

    @property
    def breath_log_path(self) -> Path:
        return self.base_dir / "breath-log.json"

    @property
    def central_memory_path(self) -> Path:
        return self.public_dir / "central-memory.json"

    @property
    def meeting_template_path(self) -> Path:
        return self.public_dir / "meeting.json"

    @property
    def purify_bin_path(self) -> Path:
        return self.data_dir / "purify-bin.json"

    @property
    def hacoin_ledger_path(self) -> Path:
        return self.public_dir / "ha-coin.json"

    @property
    def hacoin_events_path(self) -> Path:
        return self.data_dir / "hacoin-events.jsonl"

    def ensure_directories(self) -> None:
        for directory in (self.public_dir, self.data_dir, self.meetings_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def get_paths(self) -> Dict[str, str]:
        """Resolved locations, for the debug endpoint and the inspector"""
        return {
            'coreHeart': str(self.base_dir),
            'publicDir': str(self.public_dir),
            'meetingsDir': str(self.meetings_dir),
            'breathLog': str(self.breath_log_path),
            'purifyBin': str(self.purify_bin_path),
            'centralMemory': str(self.central_memory_path),
            'hacoinLedger': str(self.hacoin_ledger_path),
            'hacoinEvents': str(self.hacoin_events_path),
        }

    def validate_config(self) -> List[str]:
        """Validate configuration settings"""
        issues = []

        if self.port < 1 or self.port > 65535:
            issues.append("PORT must be between 1 and 65535")

        for name in ('breath_log_cap', 'central_memory_cap', 'ledger_cap', 'ledger_read_max',
                     'filter_max_length', 'filter_repeat_run'):
            if getattr(self, name) < 1:
                issues.append(f"{name} must be a positive integer")

        if self.log_level.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            issues.append(f"Unknown log level: {self.log_level}")

        return issues


# Environment-specific configurations
class DevelopmentConfig(CoreHeartConfig):
    """Development environment configuration"""
    DEBUG = True
    LOG_LEVEL = 'DEBUG'


class ProductionConfig(CoreHeartConfig):
    """Production environment configuration"""
    DEBUG = False
    LOG_LEVEL = 'INFO'


class TestConfig(CoreHeartConfig):
    """Test environment configuration"""
    __test__ = False
    DEBUG = True
    LOG_LEVEL = 'DEBUG'


# Configuration factory
def get_config(env=None, base_dir=None, **overrides) -> CoreHeartConfig:
    """Build the configuration for an environment"""
    env = env or os.getenv('CORE_HEART_ENV', 'development')

    configs = {
        'development': DevelopmentConfig,
        'production': ProductionConfig,
        'test': TestConfig
    }

    return configs.get(env, DevelopmentConfig)(base_dir=base_dir, **overrides)


def clamp_limit(value, default: int, low: int, high: int) -> int:
    """Parse a caller-supplied limit and clamp it to [low, high]."""
    if value is None or value == "":
        number = default
    else:
        try:
            parsed = float(value)
        except (TypeError, ValueError, OverflowError):
            parsed = float(default)
        if math.isnan(parsed):
            number = default
        elif math.isinf(parsed):
            number = high if parsed > 0 else low
        else:
            number = int(parsed)
    return max(low, min(high, number))
