from __future__ import annotations
"""
qmarket.config: configuration for the compute marketplace

Covers:
- Fee schedule: platform fee on settlement and cancellation fee on refund
  (basis points, 10_000 = 100%)
- Reputation policy: initial score, cap, bonus for a timely completion
- Ledger wiring: escrow/treasury account names and the length of an "hour"
  used when converting deadline offsets to seconds

Environment overrides (all optional; sensible defaults provided):

  # Fees (basis points)
  QMARKET_PLATFORM_FEE_BPS=300
  QMARKET_CANCELLATION_FEE_BPS=500

  The defaults give the reference settlement (provider gets payment minus
  payment*3//100) and refund (payment minus payment//20). Any other value is
  a deployment-specific schedule and moves away from those amounts.

  # Reputation
  QMARKET_REPUTATION_INITIAL=100
  QMARKET_REPUTATION_MAX=200
  QMARKET_REPUTATION_TIMELY_BONUS=1

  # Ledger
  QMARKET_ESCROW_ACCOUNT=market:escrow
  QMARKET_TREASURY_ACCOUNT=market:treasury
  QMARKET_SECONDS_PER_HOUR=3600

You can also load from a JSON or YAML file via `QMARKET_CONFIG_FILE=/path/to/config.(json|yaml|yml)`.
File values override defaults; environment overrides the file.
"""


from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional
import json
import os
from pathlib import Path

import yaml


# -------------------------- Data classes --------------------------


@dataclass
class FeeSchedule:
    """Fees in basis points. 300 bps = 3% platform fee, 500 bps = 5% cancellation fee."""
    platform_fee_bps: int = 300
    cancellation_fee_bps: int = 500

    def validate(self) -> None:
        for name, v in (("platform_fee_bps", self.platform_fee_bps),
                        ("cancellation_fee_bps", self.cancellation_fee_bps)):
            if not (0 <= v <= 10_000):
                raise ValueError(f"{name} must be between 0 and 10000 (got {v}).")


@dataclass
class ReputationPolicy:
    """Provider reputation bounds. Scores only ever increase."""
    initial: int = 100
    maximum: int = 200
    timely_bonus: int = 1

    def validate(self) -> None:
        if self.initial < 0:
            raise ValueError("initial reputation must be non-negative.")
        if self.maximum < self.initial:
            raise ValueError(
                f"maximum reputation ({self.maximum}) must be >= initial ({self.initial})."
            )
        if self.timely_bonus < 0:
            raise ValueError("timely_bonus must be non-negative.")


@dataclass
class LedgerConfig:
    """Accounts the engine holds funds in, and the deadline time unit."""
    escrow_account: str = "market:escrow"
    treasury_account: str = "market:treasury"
    seconds_per_hour: int = 3_600

    def validate(self) -> None:
        if not self.escrow_account or not self.treasury_account:
            raise ValueError("escrow_account and treasury_account must be non-empty.")
        if self.escrow_account == self.treasury_account:
            raise ValueError("escrow_account and treasury_account must differ.")
        if self.seconds_per_hour <= 0:
            raise ValueError("seconds_per_hour must be positive.")


@dataclass
class MarketConfig:
    """Top-level configuration container."""
    fees: FeeSchedule = field(default_factory=FeeSchedule)
    reputation: ReputationPolicy = field(default_factory=ReputationPolicy)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)

    def validate(self) -> None:
        self.fees.validate()
        self.reputation.validate()
        self.ledger.validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# -------------------------- Loaders --------------------------


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError as e:
        raise ValueError(f"{name} must be an integer (got {raw!r}).") from e


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    return default if raw is None or raw == "" else raw


def from_env(base: Optional[MarketConfig] = None) -> MarketConfig:
    """
    Apply QMARKET_* environment overrides on top of `base` (or defaults).
    """
    cfg = base or MarketConfig()

    new_cfg = MarketConfig(
        fees=FeeSchedule(
            platform_fee_bps=_env_int("QMARKET_PLATFORM_FEE_BPS", cfg.fees.platform_fee_bps),
            cancellation_fee_bps=_env_int("QMARKET_CANCELLATION_FEE_BPS", cfg.fees.cancellation_fee_bps),
        ),
        reputation=ReputationPolicy(
            initial=_env_int("QMARKET_REPUTATION_INITIAL", cfg.reputation.initial),
            maximum=_env_int("QMARKET_REPUTATION_MAX", cfg.reputation.maximum),
            timely_bonus=_env_int("QMARKET_REPUTATION_TIMELY_BONUS", cfg.reputation.timely_bonus),
        ),
        ledger=LedgerConfig(
            escrow_account=_env_str("QMARKET_ESCROW_ACCOUNT", cfg.ledger.escrow_account),
            treasury_account=_env_str("QMARKET_TREASURY_ACCOUNT", cfg.ledger.treasury_account),
            seconds_per_hour=_env_int("QMARKET_SECONDS_PER_HOUR", cfg.ledger.seconds_per_hour),
        ),
    )
    new_cfg.validate()
    return new_cfg


def from_file(path: str | os.PathLike[str]) -> MarketConfig:
    """
    Load configuration from a JSON or YAML file.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(p)

    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text or "{}")

    fees = data.get("fees", {})
    rep = data.get("reputation", {})
    ledger = data.get("ledger", {})

    cfg = MarketConfig(
        fees=FeeSchedule(
            platform_fee_bps=int(fees.get("platform_fee_bps", FeeSchedule().platform_fee_bps)),
            cancellation_fee_bps=int(fees.get("cancellation_fee_bps", FeeSchedule().cancellation_fee_bps)),
        ),
        reputation=ReputationPolicy(
            initial=int(rep.get("initial", ReputationPolicy().initial)),
            maximum=int(rep.get("maximum", ReputationPolicy().maximum)),
            timely_bonus=int(rep.get("timely_bonus", ReputationPolicy().timely_bonus)),
        ),
        ledger=LedgerConfig(
            escrow_account=str(ledger.get("escrow_account", LedgerConfig().escrow_account)),
            treasury_account=str(ledger.get("treasury_account", LedgerConfig().treasury_account)),
            seconds_per_hour=int(ledger.get("seconds_per_hour", LedgerConfig().seconds_per_hour)),
        ),
    )
    cfg.validate()
    return cfg


def load() -> MarketConfig:
    """
    Load configuration using the following precedence:
      1) File at $QMARKET_CONFIG_FILE (JSON/YAML)
      2) Environment variables (QMARKET_*), applied on top of defaults or file values
    """
    file_path = os.getenv("QMARKET_CONFIG_FILE")
    base = from_file(file_path) if file_path else MarketConfig()
    return from_env(base=base)


# -------------------------- Utilities --------------------------


def pretty(cfg: Optional[MarketConfig] = None) -> str:
    """Return a human-readable JSON string of the current config."""
    obj = (cfg or load()).to_dict()
    return json.dumps(obj, indent=2, sort_keys=True)


__all__ = [
    "FeeSchedule",
    "ReputationPolicy",
    "LedgerConfig",
    "MarketConfig",
    "from_env",
    "from_file",
    "load",
    "pretty",
]
