"""Allow ``python -m llmpipe``."""

from llmpipe.cli import app

if __name__ == "__main__":
    app()
