"""Entry point for `python -m ethipc`."""

from ethipc.cli.commands import app

if __name__ == "__main__":
    app()
