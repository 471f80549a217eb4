"""
Configuration loading and wiring of the shared gateway state.
"""

import copy
import os

import yaml

from workout_engine.audit_log import AuditDB, AuditLog
from workout_engine.cost_optimization import DEFAULT_PRICING, CostTracker, ResponseCache, TokenBucket
from workout_engine.errors import ConfigurationError
from workout_engine.logging_config import get_logger
from workout_engine.model_gateway import DEFAULT_MODEL, AnthropicProvider, ModelGateway


logger = get_logger(__name__)

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.yaml")
LOG_LEVEL_ENV = "WORKOUT_ENGINE_LOG_LEVEL"

DEFAULT_CONFIG = {
    "claude": {
        "model": DEFAULT_MODEL,
        "api_key_env": "ANTHROPIC_API_KEY",
        "max_tokens": 4096,
        "weekly_max_tokens": 12000,
        "temperature": 0.7,
        "timeout": 60,
    },
    "gateway": {
        "max_attempts": 3,
        "backoff_base_seconds": 1.0,
        "backoff_max_seconds": 8.0,
        "total_timeout_seconds": 120,
        "rate_limit": {"capacity": 10, "refill_per_second": 0.5, "wait_seconds": 2.0},
        "cache": {"ttl_seconds": 86400, "max_entries": 1000},
        "budget": {"window_usd": 100.0, "user_window_usd": 1.00},
        "pricing": DEFAULT_PRICING,
    },
    "audit": {"db_path": "", "max_memory_records": 1000},
    "orchestrator": {"max_workers": 4, "wait_grace_seconds": 5},
    "logging": {"level": "INFO", "json": True},
}


def _deep_merge(base, override):
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path=None):
    """
    Load configuration from config.yaml merged over the built-in defaults.

    Args:
        config_path: Explicit path; when omitted the repo's config.yaml is used
            if present

    Raises:
        ConfigurationError: when an explicit path is missing or the YAML is invalid
    """
    path = config_path or DEFAULT_CONFIG_PATH
    loaded = {}
    if os.path.exists(path):
        try:
            with open(path, "r") as f:
                loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Could not parse {path}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{path} must contain a mapping at the top level")
    elif config_path:
        raise ConfigurationError(f"Config file not found: {config_path}")

    config = _deep_merge(DEFAULT_CONFIG, loaded)

    env_level = os.getenv(LOG_LEVEL_ENV)
    if env_level:
        config["logging"]["level"] = env_level
    return config


def get_api_key(config):
    """
    Read the provider API key from the environment variable named in config.

    Raises:
        ConfigurationError: when the variable is unset or empty
    """
    api_key_env = config["claude"]["api_key_env"]
    api_key = os.getenv(api_key_env)
    if not api_key:
        raise ConfigurationError(f"{api_key_env} not found in environment variables", code="MISSING_API_KEY")
    return api_key


def build_audit_log(config):
    audit_config = config.get("audit") or {}
    db = None
    db_path = audit_config.get("db_path")
    if db_path:
        db = AuditDB(db_path)
        db.init_schema()
    return AuditLog(max_records=audit_config.get("max_memory_records", 1000), db=db)


def build_gateway(config, provider=None, api_key=None):
    """
    Wire a ModelGateway with one cache, rate limiter, cost tracker and audit log.

    Args:
        config: Loaded configuration
        provider: Provider object to use instead of AnthropicProvider
        api_key: API key; read from the environment when omitted

    Raises:
        ConfigurationError: when no provider is given and the key is missing
    """
    claude = config["claude"]
    gateway_config = config["gateway"]

    if provider is None:
        provider = AnthropicProvider(
            api_key=api_key or get_api_key(config),
            model=claude["model"],
            timeout=claude.get("timeout", 60),
        )

    rate = gateway_config["rate_limit"]
    cache = gateway_config["cache"]
    budget = gateway_config["budget"]

    cost_tracker = CostTracker(
        window_budget_usd=budget["window_usd"],
        user_budget_usd=budget.get("user_window_usd"),
        pricing=gateway_config.get("pricing"),
    )
    weekly_estimate = cost_tracker.estimate_cost(
        claude["model"], 0, claude.get("weekly_max_tokens", claude["max_tokens"])
    )
    if cost_tracker.user_budget_usd is not None and cost_tracker.user_budget_usd < weekly_estimate:
        logger.warning(
            "Per-user budget cannot cover a single weekly plan call",
            extra={"ctx_user_budget_usd": cost_tracker.user_budget_usd, "ctx_weekly_estimate_usd": round(weekly_estimate, 4)},
        )

    logger.info(
        "Building model gateway",
        extra={"ctx_model": claude["model"], "ctx_max_attempts": gateway_config["max_attempts"]},
    )
    return ModelGateway(
        provider=provider,
        cache=ResponseCache(ttl_seconds=cache["ttl_seconds"], max_entries=cache["max_entries"]),
        rate_limiter=TokenBucket(rate["capacity"], rate["refill_per_second"]),
        cost_tracker=cost_tracker,
        audit_log=build_audit_log(config),
        model=claude["model"],
        max_attempts=gateway_config["max_attempts"],
        backoff_base_seconds=gateway_config["backoff_base_seconds"],
        backoff_max_seconds=gateway_config["backoff_max_seconds"],
        attempt_timeout_seconds=claude.get("timeout", 60),
        total_timeout_seconds=gateway_config["total_timeout_seconds"],
        rate_limit_wait_seconds=rate.get("wait_seconds", 0.0),
    )
