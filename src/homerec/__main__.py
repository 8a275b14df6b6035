"""Module entrypoint for ``python -m homerec``."""

from __future__ import annotations

from homerec.cli import main

if __name__ == "__main__":
    main()
