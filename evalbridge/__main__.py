"""Entry point for running evalbridge as a module: python -m evalbridge"""

from evalbridge.cli.commands import app

if __name__ == "__main__":
    app()
