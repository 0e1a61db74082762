"""Pool registry: coin type tags and DeepBook v3 mainnet pools.

The built-in table can be extended from YAML, path via env `JANITOR_POOLS_FILE`,
default `configs/pools.yaml`:

    coins:
      FOO: "0x...::foo::FOO"
    pools:
      FOO_SUI: { address: "0x...", base: FOO, quote: SUI }

A pool whose coin symbol is unknown is either rejected together with the whole
registry (strict) or skipped and listed in `PoolRegistry.skipped`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import yaml

from deepbook_janitor.core.errors import ConfigError
from deepbook_janitor.core.types import PoolConfig

log = logging.getLogger("janitor")

MAINNET_COINS: Dict[str, str] = {
    "DEEP": "0xdeeb7a4662eec9f2f3def03fb937a663dddaa2e215b8078a284d026b7946c270::deep::DEEP",
    "SUI": "0x0000000000000000000000000000000000000000000000000000000000000002::sui::SUI",
    "USDC": "0xdba34672e30cb065b1f93e3ab55318768fd6fef66c15942c9f7cb846e2f900e7::usdc::USDC",
    "WUSDC": "0x5d4b302506645c37ff133b98c4b50a5ae14841659738d6d733d59d0d217a93bf::coin::COIN",
    "WETH": "0xaf8cd5edc19c4512f4259f0bee101a40d41ebed738ade5874359610ef8eeced5::coin::COIN",
    "BETH": "0xd0e89b2af5e4910726fbcd8b8dd37bb79b29e5f83f7491bca830e94f7f226d29::eth::ETH",
    "WBTC": "0x027792d9fed7f9844eb4839566001bb6f6cb4804f66aa2da6fe1ee242d896881::coin::COIN",
    "WUSDT": "0xc060006111016b8a020ad5b33834984a437aaa7d3c74c18e09a95d48aceab08c::coin::COIN",
    "NS": "0x5145494a5f5100e645e4b0aa950fa6b68f614e8c59e17bc5ded3495123a79178::ns::NS",
    "TYPUS": "0xf82dc05634970553615eef6112a1ac4fb7bf10272bf6cbe0f80ef44a6c489385::typus::TYPUS",
    "AUSD": "0x2053d08c1e2bd02791056171aab0fd12bd7cd7efad2ab8f6b9c8902f14df2ff2::ausd::AUSD",
    "DRF": "0x294de7579d55c110a00a7c4946e09a1b5cbeca2592fbb83fd7bfacba3cfeaf0e::drf::DRF",
    "SEND": "0xb45fcfcc2cc07ce0702cc2d229621e046c906ef14d9b25e8e4d25f6e8763fef7::send::SEND",
    "WAL": "0x356a26eb9e012a68958082340d4c4116e7f55615cf27affcff209cf0ae544f59::wal::WAL",
    "XBTC": "0x876a4b7bce8aeaef60464c11f4026903e9afacab79b9b142686158aa86560b50::xbtc::XBTC",
    "IKA": "0x7262fb2f7a3a14c888c438a3cd9b912469a58cf60f367352c46584262e8299aa::ika::IKA",
    "ALKIMI": "0x1a8f4bc33f8ef7fbc851f156857aa65d397a6a6fd27a7ac2ca717b51f2fd9489::alkimi::ALKIMI",
    "LZWBTC": "0x0041f9f9344cac094454cd574e333c4fdb132d7bcc9379bcd4aab485b2a63942::wbtc::WBTC",
    "WGIGA": "0xec32640add6d02a1d5f0425d72705eb76d9de7edfd4f34e0dba68e62ecceb05b::coin::COIN",
}

# name -> (pool address, base symbol, quote symbol)
MAINNET_POOLS: Dict[str, Tuple[str, str, str]] = {
    "DEEP_SUI": ("0xb663828d6217467c8a1838a03793da896cbe745b150ebd57d82f814ca579fc22", "DEEP", "SUI"),
    "SUI_USDC": ("0xe05dafb5133bcffb8d59f4e12465dc0e9faeaa05e3e342a08fe135800e3e4407", "SUI", "USDC"),
    "DEEP_USDC": ("0xf948981b806057580f91622417534f491da5f61aeaf33d0ed8e69fd5691c95ce", "DEEP", "USDC"),
    "WUSDT_USDC": ("0x4e2ca3988246e1d50b9bf209abb9c1cbfec65bd95afdacc620a36c67bdb8452f", "WUSDT", "USDC"),
    "WUSDC_USDC": ("0xa0b9ebefb38c963fd115f52d71fa64501b79d1adcb5270563f92ce0442376545", "WUSDC", "USDC"),
    "BETH_USDC": ("0x1109352b9112717bd2a7c3eb9a416fff1ba6951760f5bdd5424cf5e4e5b3e65c", "BETH", "USDC"),
    "NS_USDC": ("0x0c0fdd4008740d81a8a7d4281322aee71a1b62c449eb5b142656753d89ebc060", "NS", "USDC"),
    "NS_SUI": ("0x27c4fdb3b846aa3ae4a65ef5127a309aa3c1f466671471a806d8912a18b253e8", "NS", "SUI"),
    "TYPUS_SUI": ("0xe8e56f377ab5a261449b92ac42c8ddaacd5671e9fec2179d7933dd1a91200eec", "TYPUS", "SUI"),
    "SUI_AUSD": ("0x183df694ebc852a5f90a959f0f563b82ac9691e42357e9a9fe961d71a1b809c8", "SUI", "AUSD"),
    "AUSD_USDC": ("0x5661fc7f88fbeb8cb881150a810758cf13700bb4e1f31274a244581b37c303c3", "AUSD", "USDC"),
    "DRF_SUI": ("0x126865a0197d6ab44bfd15fd052da6db92fd2eb831ff9663451bbfa1219e2af2", "DRF", "SUI"),
    "SEND_USDC": ("0x1fe7b99c28ded39774f37327b509d58e2be7fff94899c06d22b407496a6fa990", "SEND", "USDC"),
    "WAL_USDC": ("0x56a1c985c1f1123181d6b881714793689321ba24301b3585eec427436eb1c76d", "WAL", "USDC"),
    "WAL_SUI": ("0x81f5339934c83ea19dd6bcc75c52e83509629a5f71d3257428c2ce47cc94d08b", "WAL", "SUI"),
    "XBTC_USDC": ("0x20b9a3ec7a02d4f344aa1ebc5774b7b0ccafa9a5d76230662fdc0300bb215307", "XBTC", "USDC"),
    "IKA_USDC": ("0xfa732993af2b60d04d7049511f801e79426b2b6a5103e22769c0cead982b0f47", "IKA", "USDC"),
    "ALKIMI_SUI": ("0x84752993c6dc6fce70e25ddeb4daddb6592d6b9b0912a0a91c07cfff5a721d89", "ALKIMI", "SUI"),
    "LZWBTC_USDC": ("0xf5142aafa24866107df628bf92d0358c7da6acc46c2f10951690fd2b8570f117", "LZWBTC", "USDC"),
}


@dataclass(frozen=True)
class SkippedPool:
    name: str
    reason: str


class PoolRegistry(Mapping[str, PoolConfig]):
    """Immutable name -> PoolConfig mapping, built once at startup."""

    def __init__(self, pools: Dict[str, PoolConfig], skipped: Sequence[SkippedPool] = ()) -> None:
        self._pools = MappingProxyType(dict(pools))
        self.skipped: Tuple[SkippedPool, ...] = tuple(skipped)

    def __getitem__(self, name: str) -> PoolConfig:
        return self._pools[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._pools)

    def __len__(self) -> int:
        return len(self._pools)

    @property
    def is_partial(self) -> bool:
        return bool(self.skipped)

    @classmethod
    def build(
        cls,
        coins: Mapping[str, str],
        pools: Mapping[str, Tuple[str, str, str]],
        strict: bool = False,
    ) -> "PoolRegistry":
        built: Dict[str, PoolConfig] = {}
        skipped: List[SkippedPool] = []
        for name, (address, base, quote) in pools.items():
            missing = [sym for sym in (base, quote) if sym not in coins]
            if not address:
                missing.append("address")
            if missing:
                reason = f"missing coin config: {', '.join(missing)}"
                if strict:
                    raise ConfigError(f"pool {name}: {reason}")
                log.warning(json.dumps({"event": "pool_skipped", "pool": name, "reason": reason}))
                skipped.append(SkippedPool(name, reason))
                continue
            built[name] = PoolConfig(name=name, pool_id=address, base_type=coins[base], quote_type=coins[quote])
        return cls(built, skipped)

    def by_id(self, pool_id: str) -> Optional[PoolConfig]:
        for pool in self._pools.values():
            if pool.pool_id == pool_id:
                return pool
        return None

    def select(self, names: Sequence[str] = (), pool_id: Optional[str] = None) -> List[PoolConfig]:
        """
        Pools for one pass: the named ones, or the one with `pool_id`, or all.

        An id that is not registered yields a PoolConfig with empty type tags;
        the pass fills them from the pool object's own type.
        """
        if names:
            unknown = [n for n in names if n not in self._pools]
            if unknown:
                raise ConfigError(f"unknown pool name(s): {', '.join(unknown)}")
            return [self._pools[n] for n in names]
        if pool_id:
            known = self.by_id(pool_id)
            return [known or PoolConfig(name=pool_id[:10], pool_id=pool_id, base_type="", quote_type="")]
        return list(self._pools.values())


def _read_overrides(path: Path) -> Tuple[Dict[str, str], Dict[str, Tuple[str, str, str]]]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"pool file is not valid YAML: {path}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"pool file must hold a mapping: {path}")

    coins_raw = data.get("coins") or {}
    pools_raw = data.get("pools") or {}
    if not isinstance(coins_raw, dict) or not isinstance(pools_raw, dict):
        raise ConfigError(f"'coins' and 'pools' must be mappings: {path}")

    coins = {str(k): str(v) for k, v in coins_raw.items()}
    pools: Dict[str, Tuple[str, str, str]] = {}
    for name, entry in pools_raw.items():
        if not isinstance(entry, dict):
            raise ConfigError(f"pool {name} must be a mapping")
        pools[str(name)] = (str(entry.get("address", "")), str(entry.get("base", "")), str(entry.get("quote", "")))
    return coins, pools


def load_pool_registry(path: Optional[str] = None, strict: bool = False) -> PoolRegistry:
    coins: Dict[str, Any] = dict(MAINNET_COINS)
    pools: Dict[str, Tuple[str, str, str]] = dict(MAINNET_POOLS)
    if path:
        p = Path(path)
        if p.exists():
            extra_coins, extra_pools = _read_overrides(p)
            coins.update(extra_coins)
            pools.update(extra_pools)
    return PoolRegistry.build(coins, pools, strict=strict)
