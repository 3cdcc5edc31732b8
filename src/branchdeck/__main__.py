"""Module entrypoint for `python -m branchdeck`."""

from branchdeck.cli import run

if __name__ == "__main__":
    raise SystemExit(run())
