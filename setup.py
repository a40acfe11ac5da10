"""Package setup for ocs-report."""

from setuptools import setup

setup(
    name="ocs-report",
    version="1.0.0",
    description="Per-subscriber usage and cost reports from an Online Charging System",
    packages=["ocs_report"],
    python_requires=">=3.9",
    install_requires=[
        "httpx>=0.24.0",
        "pydantic>=2.0.0",
        "typer>=0.9.0",
        "rich>=13.0.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0.0"],
    },
    entry_points={
        "console_scripts": [
            "ocs-report=ocs_report.cli:app",
        ],
    },
)
