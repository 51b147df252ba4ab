"""
Configuration management and loading.

Handles the routing policy YAML file and the environment-provided
credentials. Configuration is built once at process start and passed to the
router by parameter.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, List, Mapping, Optional

import yaml

from ai_router.core.models import Caller, ProviderId
from ai_router.core.selector import COMPLEX_TASK_TYPES
from ai_router.core.tier_policy import DEFAULT_TIER_POLICY, TierLimits, TierPolicy
from ai_router.storage.db import DEFAULT_DB_PATH

UNLIMITED = "unlimited"

ENV_DEEPSEEK_API_KEY = "DEEPSEEK_API_KEY"
ENV_GEMINI_API_KEY = "GOOGLE_AI_API_KEY"
ENV_DB_PATH = "AI_ROUTER_DB_PATH"
ENV_LOG_LEVEL = "AI_ROUTER_LOG_LEVEL"
ENV_LOG_JSON = "AI_ROUTER_LOG_JSON"
ENV_CONFIG_PATH = "AI_ROUTER_CONFIG"


@dataclass(frozen=True)
class RoutingPolicyConfig:
    """Routing policy: tier table, complex task set, and development callers."""
    tier_policy: TierPolicy = DEFAULT_TIER_POLICY
    complex_tasks: FrozenSet[str] = COMPLEX_TASK_TYPES
    callers: Dict[str, Caller] = field(default_factory=dict, repr=False)


@dataclass(frozen=True)
class RouterConfig:
    """Process-wide router configuration. Credentials are excluded from repr."""
    deepseek_api_key: Optional[str] = field(default=None, repr=False)
    gemini_api_key: Optional[str] = field(default=None, repr=False)
    db_path: str = DEFAULT_DB_PATH
    log_level: str = "INFO"
    log_json: bool = False
    routing: RoutingPolicyConfig = field(default_factory=RoutingPolicyConfig)

    def credential_for(self, provider_id: ProviderId) -> Optional[str]:
        """Return the API key configured for a provider, if any."""
        return {
            ProviderId.DEEPSEEK: self.deepseek_api_key,
            ProviderId.GEMINI: self.gemini_api_key,
        }[provider_id]

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        routing_config_path: Optional[str] = None
    ) -> "RouterConfig":
        """Build configuration from environment variables.

        Args:
            environ: Environment mapping (defaults to os.environ)
            routing_config_path: Optional routing YAML; falls back to
                AI_ROUTER_CONFIG, then to the built-in policy

        Returns:
            RouterConfig
        """
        environ = os.environ if environ is None else environ

        path = routing_config_path or environ.get(ENV_CONFIG_PATH)
        routing = load_routing_config(path) if path else RoutingPolicyConfig()

        return cls(
            deepseek_api_key=environ.get(ENV_DEEPSEEK_API_KEY) or None,
            gemini_api_key=environ.get(ENV_GEMINI_API_KEY) or None,
            db_path=environ.get(ENV_DB_PATH) or DEFAULT_DB_PATH,
            log_level=(environ.get(ENV_LOG_LEVEL) or "INFO").upper(),
            log_json=(environ.get(ENV_LOG_JSON) or "").strip().lower() in {"1", "true", "yes"},
            routing=routing
        )


def load_routing_config(path: str) -> RoutingPolicyConfig:
    """Load and validate routing policy from a YAML file.

    Strict validation ensures no silent misconfiguration, such as a tier
    left without any provider or a typo in a provider name.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated RoutingPolicyConfig

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Routing config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'tiers', 'complex_tasks', 'callers'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    tier_policy = DEFAULT_TIER_POLICY
    if 'tiers' in raw_config:
        tiers_data = raw_config['tiers']
        if not isinstance(tiers_data, dict):
            raise ValueError("'tiers' must be a dictionary")
        tiers = {}
        for tier_name, tier_data in tiers_data.items():
            if not isinstance(tier_data, dict):
                raise ValueError(f"Tier '{tier_name}' must be a dictionary")
            tiers[str(tier_name).lower()] = _parse_tier(tier_data, f"tiers.{tier_name}")
        tier_policy = TierPolicy(tiers)

    complex_tasks = COMPLEX_TASK_TYPES
    if 'complex_tasks' in raw_config:
        complex_tasks = frozenset(_parse_string_list(raw_config['complex_tasks'], "complex_tasks"))

    callers = {}
    callers_data = raw_config.get('callers', {}) or {}
    if not isinstance(callers_data, dict):
        raise ValueError("'callers' must be a dictionary")
    for token, caller_data in callers_data.items():
        callers[str(token)] = _parse_caller(caller_data, "callers.<token>")

    return RoutingPolicyConfig(
        tier_policy=tier_policy,
        complex_tasks=complex_tasks,
        callers=callers
    )


def _parse_tier(data: Dict, path: str) -> TierLimits:
    """Parse and validate one tier entry.

    Args:
        data: Tier configuration data
        path: Path for error messages

    Returns:
        Validated TierLimits

    Raises:
        ValueError: If configuration is invalid
    """
    allowed_keys = {'request_limit', 'providers'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    if 'request_limit' not in data:
        raise ValueError(f"Missing required 'request_limit' in {path}")

    raw_limit = data['request_limit']
    if isinstance(raw_limit, str) and raw_limit.strip().lower() == UNLIMITED:
        request_limit = None
    elif isinstance(raw_limit, int) and not isinstance(raw_limit, bool) and raw_limit >= 0:
        request_limit = raw_limit
    else:
        raise ValueError(f"'request_limit' in {path} must be a non-negative integer or '{UNLIMITED}'")

    if 'providers' not in data:
        raise ValueError(f"Missing required 'providers' in {path}")

    names = _parse_string_list(data['providers'], f"{path}.providers")
    if not names:
        raise ValueError(f"'providers' in {path} cannot be empty")

    providers = set()
    for name in names:
        try:
            providers.add(ProviderId(name.lower()))
        except ValueError:
            valid = [p.value for p in ProviderId]
            raise ValueError(f"Unknown provider '{name}' in {path}; must be one of: {valid}")

    return TierLimits(request_limit=request_limit, allowed_providers=frozenset(providers))


def _parse_caller(data: Dict, path: str) -> Caller:
    if not isinstance(data, dict):
        raise ValueError(f"Entries in {path} must be dictionaries")

    allowed_keys = {'caller_id', 'tier'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    caller_id = data.get('caller_id')
    if not isinstance(caller_id, str) or not caller_id.strip():
        raise ValueError(f"'caller_id' in {path} must be a non-empty string")

    tier = data.get('tier', 'free')
    if not isinstance(tier, str):
        raise ValueError(f"'tier' in {path} must be a string")

    return Caller(caller_id=caller_id, subscription_tier=tier)


def _parse_string_list(value, path: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{path}' must be a list of strings")
    return value
