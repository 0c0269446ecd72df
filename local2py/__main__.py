# File: local2py/__main__.py
"""
local2py - Module entry point.

Allows running the generator directly via::

    python -m local2py --schema local2py.yaml --output ./build

Delegates to ``local2py.cli.cli_main``.
"""

from __future__ import annotations


def main() -> None:
    """Delegate to the CLI main function."""
    from local2py.cli import cli_main
    cli_main()


if __name__ == "__main__":
    main()
