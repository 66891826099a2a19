"""Entry point for `python -m vidcontinuity`."""

from vidcontinuity.cli.commands import app

if __name__ == "__main__":
    app()
