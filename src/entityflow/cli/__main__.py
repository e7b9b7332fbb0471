"""Entry point for ``python -m entityflow.cli`` and the ``entityflow`` script."""

from __future__ import annotations

from .app import app


def main() -> None:  # pragma: no cover - thin wrapper
    app(prog_name="entityflow")


if __name__ == "__main__":  # pragma: no cover
    main()
