from __future__ import annotations

"""
State-file plumbing shared by the CLI commands.

Each invocation loads the ledger snapshot from a JSON file, runs one
operation and, if it committed, writes the snapshot back.
"""

import json
import logging
import os
from pathlib import Path
from typing import Union

from qmarket.config import load as load_config
from qmarket.ledger.tx import Ledger
from qmarket.market import Marketplace

log = logging.getLogger(__name__)

DEFAULT_STATE = "qmarket-state.json"

PathLike = Union[str, "os.PathLike[str]"]


def open_market(path: PathLike) -> Marketplace:
    cfg = load_config()
    p = Path(path)
    if p.exists():
        data = json.loads(p.read_text(encoding="utf-8"))
        ledger = Ledger.load(data, cfg)
        log.debug("cli: loaded state from %s (%d jobs)", p, len(ledger.store.jobs))
    else:
        ledger = Ledger(cfg)
        log.debug("cli: starting fresh state at %s", p)
    return Marketplace(ledger)


def save_market(path: PathLike, market: Marketplace) -> None:
    p = Path(path)
    if p.parent and not p.parent.exists():
        p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_name(p.name + ".tmp")
    tmp.write_text(json.dumps(market.ledger.dump(), indent=2, sort_keys=True), encoding="utf-8")
    os.replace(tmp, p)
    log.debug("cli: saved state to %s", p)


__all__ = ["DEFAULT_STATE", "open_market", "save_market"]
