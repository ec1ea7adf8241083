"""
qmarket.cli
-----------

Typer command-line interface over a JSON state file. Entry point:
`qmarket` (console script) or `python -m qmarket.cli`.
"""

from .main import app, get_app

__all__ = ["app", "get_app"]
