"""
Environment-driven configuration with validation.

Values come from the environment (a local `.env` is loaded first). An optional
JSON file supplies network, rpcUrl, privateKey, userAddress and poolId for
anything the environment leaves unset.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from deepbook_janitor.core.errors import ConfigError

load_dotenv()

DEEPBOOK_PACKAGE_ID = "0x00c1a56ec8c4c623a848b2ed2f03d23a25d17570b670c22106f336eb933785cc"

NETWORK_URLS: Dict[str, str] = {
    "mainnet": "https://fullnode.mainnet.sui.io:443",
    "testnet": "https://fullnode.testnet.sui.io:443",
    "devnet": "https://fullnode.devnet.sui.io:443",
}

PLACEHOLDER_KEY = "your_base64_private_key_here"

# Sui caps the number of commands in one programmable transaction block
MAX_COMMANDS_PER_PTB = 1024
# and the number of ids in one sui_multiGetObjects call
MAX_MULTI_GET = 50

CALL_STYLES = ("vector", "scalar")


def env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key)
    if val is None or val == "":
        return default
    return val.lower() in {"1", "true", "yes", "y"}


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc


def _float_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc


def _list_env(key: str) -> List[str]:
    raw = os.getenv(key) or ""
    return [p.strip() for p in raw.split(",") if p.strip()]


def load_json_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Read the optional JSON config. A missing default file is not an error;
    an explicitly named file that is missing or malformed is.
    """
    explicit = path or os.getenv("JANITOR_CONFIG_FILE")
    p = Path(explicit or "config.json")
    if not p.exists():
        if explicit:
            raise ConfigError(f"config file not found: {p.resolve()}")
        return {}
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"config file is not valid JSON: {p.resolve()}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config file must hold a JSON object: {p.resolve()}")
    return data


@dataclass(frozen=True)
class Settings:
    network: str
    rpc_url: str
    private_key: str | None
    user_address: str | None
    pool_id: str | None
    pools: List[str] = field(default_factory=list)
    package_id: str = DEEPBOOK_PACKAGE_ID
    call_style: str = "vector"
    cleanup_module: str = "deepbook"
    cleanup_function: str = "clean_up_expired_orders"
    single_cleanup_module: str = "pool"
    single_cleanup_function: str = "clean_up_expired_order"
    max_orders_per_tx: int = 50
    platform_ceiling: int = MAX_COMMANDS_PER_PTB
    gas_budget: int = 100_000_000
    rebate_per_order_mist: int = 2_970_000
    gas_cost_estimate_mist: int = 5_000_000
    page_limit: int = 50
    multi_get_batch: int = MAX_MULTI_GET
    http_timeout: float = 10.0
    concurrent_pools: bool = False
    loop_interval_sec: float = 0.0
    dry_run: bool = False
    fetch_actual_rebate: bool = False
    user_orders_limit: int = 100
    strict_registry: bool = False
    pools_file: str = "configs/pools.yaml"
    metrics_port: int = 0
    log_file: str | None = "janitor.log"
    log_level: str = "INFO"
    json_logs: bool = False

    def dump(self) -> dict:
        """Settings as a dict with the key redacted, for the startup log."""
        out = self.__dict__.copy()
        if out.get("private_key"):
            out["private_key"] = "***"
        return out

    @classmethod
    def load(cls, config_file: Optional[str] = None) -> "Settings":
        file_cfg = load_json_config(config_file)

        network = os.getenv("SUI_NETWORK") or file_cfg.get("network") or "mainnet"
        rpc_url = os.getenv("SUI_RPC_URL") or file_cfg.get("rpcUrl") or NETWORK_URLS.get(str(network).lower(), "")
        log_file = os.getenv("JANITOR_LOG_FILE", "janitor.log")

        cfg = cls(
            network=str(network).lower(),
            rpc_url=rpc_url,
            private_key=os.getenv("SUI_PRIVATE_KEY") or file_cfg.get("privateKey"),
            user_address=os.getenv("SUI_USER_ADDRESS") or file_cfg.get("userAddress"),
            pool_id=os.getenv("JANITOR_POOL_ID") or file_cfg.get("poolId"),
            pools=_list_env("JANITOR_POOLS"),
            package_id=os.getenv("JANITOR_PACKAGE_ID", DEEPBOOK_PACKAGE_ID),
            call_style=os.getenv("JANITOR_CALL_STYLE", "vector").lower(),
            cleanup_module=os.getenv("JANITOR_CLEANUP_MODULE", "deepbook"),
            cleanup_function=os.getenv("JANITOR_CLEANUP_FUNCTION", "clean_up_expired_orders"),
            single_cleanup_module=os.getenv("JANITOR_SINGLE_CLEANUP_MODULE", "pool"),
            single_cleanup_function=os.getenv("JANITOR_SINGLE_CLEANUP_FUNCTION", "clean_up_expired_order"),
            max_orders_per_tx=_int_env("JANITOR_MAX_ORDERS_PER_TX", 50),
            platform_ceiling=_int_env("JANITOR_PLATFORM_CEILING", MAX_COMMANDS_PER_PTB),
            gas_budget=_int_env("JANITOR_GAS_BUDGET", 100_000_000),
            rebate_per_order_mist=_int_env("JANITOR_REBATE_PER_ORDER_MIST", 2_970_000),
            gas_cost_estimate_mist=_int_env("JANITOR_GAS_COST_ESTIMATE_MIST", 5_000_000),
            page_limit=_int_env("JANITOR_PAGE_LIMIT", 50),
            multi_get_batch=_int_env("JANITOR_MULTI_GET_BATCH", MAX_MULTI_GET),
            http_timeout=_float_env("JANITOR_HTTP_TIMEOUT", 10.0),
            concurrent_pools=env_bool("JANITOR_CONCURRENT_POOLS", False),
            loop_interval_sec=_float_env("JANITOR_LOOP_INTERVAL_SEC", 0.0),
            dry_run=env_bool("JANITOR_DRY_RUN", False),
            fetch_actual_rebate=env_bool("JANITOR_FETCH_ACTUAL_REBATE", False),
            user_orders_limit=_int_env("JANITOR_USER_ORDERS_LIMIT", 100),
            strict_registry=env_bool("JANITOR_STRICT_REGISTRY", False),
            pools_file=os.getenv("JANITOR_POOLS_FILE", "configs/pools.yaml"),
            metrics_port=_int_env("JANITOR_METRICS_PORT", 0),
            log_file=log_file or None,
            log_level=os.getenv("JANITOR_LOG_LEVEL", "INFO").upper(),
            json_logs=env_bool("JANITOR_JSON_LOGS", False),
        )
        cfg._validate()
        return cfg

    def resolve_signer(self):
        """Decode the configured key. Raises CredentialFormatError on bad input."""
        from deepbook_janitor.infra.signer import load_signer

        if not self.private_key:
            raise ConfigError("Missing SUI_PRIVATE_KEY (or privateKey in the JSON config)")
        return load_signer(self.private_key)

    def _validate(self) -> None:
        if self.network not in NETWORK_URLS:
            raise ConfigError(f"unknown network {self.network!r}; expected one of {sorted(NETWORK_URLS)}")
        if not self.rpc_url:
            raise ConfigError("rpc_url is empty")
        if self.private_key == PLACEHOLDER_KEY:
            raise ConfigError("privateKey still holds the example placeholder")
        if self.call_style not in CALL_STYLES:
            raise ConfigError(f"JANITOR_CALL_STYLE must be one of {CALL_STYLES}")
        if self.max_orders_per_tx <= 0:
            raise ConfigError("JANITOR_MAX_ORDERS_PER_TX must be > 0")
        if not 0 < self.platform_ceiling <= MAX_COMMANDS_PER_PTB:
            raise ConfigError(f"JANITOR_PLATFORM_CEILING must be in 1..{MAX_COMMANDS_PER_PTB}")
        if self.gas_budget <= 0:
            raise ConfigError("JANITOR_GAS_BUDGET must be > 0")
        if self.rebate_per_order_mist < 0 or self.gas_cost_estimate_mist < 0:
            raise ConfigError("rebate and gas estimates must be >= 0")
        if self.page_limit <= 0:
            raise ConfigError("JANITOR_PAGE_LIMIT must be > 0")
        if not 0 < self.multi_get_batch <= MAX_MULTI_GET:
            raise ConfigError(f"JANITOR_MULTI_GET_BATCH must be in 1..{MAX_MULTI_GET}")
        if self.loop_interval_sec < 0:
            raise ConfigError("JANITOR_LOOP_INTERVAL_SEC must be >= 0")
        if self.user_orders_limit <= 0:
            raise ConfigError("JANITOR_USER_ORDERS_LIMIT must be > 0")
        if self.max_orders_per_tx > self.platform_ceiling:
            logging.getLogger("janitor").warning(json.dumps({
                "event": "config_max_orders_clamped",
                "max_orders_per_tx": self.max_orders_per_tx,
                "platform_ceiling": self.platform_ceiling,
            }))
