"""Allow ``python -m leakscope``."""

from leakscope.cli import app

if __name__ == "__main__":
    app()
