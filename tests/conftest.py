"""Shared fixtures for kernel and API tests. No database is involved."""

from __future__ import annotations

import pytest

from tests.advertis_kernel._kernel_testkit import KernelHarness, build_harness


@pytest.fixture
def harness() -> KernelHarness:
    return build_harness()
