"""Command line entry for running a single property search."""

from cli.search import main


if __name__ == "__main__":
    raise SystemExit(main())
