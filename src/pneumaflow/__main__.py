"""Entry point for ``python -m pneumaflow``."""

from pneumaflow.cli import cli

if __name__ == "__main__":
    cli()
