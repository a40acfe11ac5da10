"""Entry point for python -m ocs_report."""

from ocs_report.cli import app

if __name__ == "__main__":
    app()
