"""Shared fixtures for the double pipe tests."""

import os
import shutil

import pytest


@pytest.fixture(autouse=True)
def _require_tools() -> None:
    for tool in ("sh", "cat", "printf"):
        if shutil.which(tool) is None:
            pytest.skip(f"{tool} is not installed")


@pytest.fixture
def proc_fds() -> None:
    if not os.path.isdir("/proc/self/fd"):
        pytest.skip("needs /proc to inspect open descriptors")


@pytest.fixture
def no_children_left():
    yield
    with pytest.raises(ChildProcessError):
        os.waitpid(-1, os.WNOHANG)
