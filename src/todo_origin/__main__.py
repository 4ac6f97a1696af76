"""Module entrypoint for ``python -m todo_origin``."""

from __future__ import annotations

from todo_origin.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
