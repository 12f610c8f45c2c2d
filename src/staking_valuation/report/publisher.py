from __future__ import annotations

from typing import Any

import typer

from .encoder import to_json


def publish_json(result: Any) -> None:
    """Publish a valuation result to stdout as indented JSON."""
    typer.echo(to_json(result))
