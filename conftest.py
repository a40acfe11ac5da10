"""Repo-wide test fixtures.

Every ``OCS_*`` variable a test sets is rolled back afterwards, so
ReportConfig.from_env() in one test never sees another test's values.
"""

from __future__ import annotations

import os

import pytest


def _ocs_vars():
    return {k: v for k, v in os.environ.items() if k.startswith("OCS_")}


@pytest.fixture(autouse=True)
def _restore_env():
    before = _ocs_vars()

    yield

    for key in set(_ocs_vars()) - set(before):
        os.environ.pop(key, None)
    os.environ.update(before)
