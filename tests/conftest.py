"""
Pytest configuration and fixtures for authzgate tests.

This module provides shared fixtures used across unit, integration,
and security tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from authzgate.policy import PolicyEngine, PolicyStore
from authzgate.schema import Policy


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_policy_yaml() -> str:
    """Return a policy set covering a normal, a readonly and a narrow user."""
    return """
policies:
  - name: ops
    users: [alice]
    actions: ["container_.*"]
  - name: auditors
    users: [carol]
    actions: [".*"]
    readonly: true
  - name: images
    users: [dave]
    actions: ["image_list", "image_inspect"]
"""


@pytest.fixture
def policy_file(temp_dir: Path, sample_policy_yaml: str) -> Path:
    """Write the sample policy set to a file."""
    path = temp_dir / "policy.yaml"
    path.write_text(sample_policy_yaml)
    return path


@pytest.fixture
def store() -> PolicyStore:
    """A policy store matching sample_policy_yaml."""
    return PolicyStore([
        Policy(name="ops", users=["alice"], actions=["container_.*"]),
        Policy(name="auditors", users=["carol"], actions=[".*"], readonly=True),
        Policy(name="images", users=["dave"], actions=["image_list", "image_inspect"]),
    ])


@pytest.fixture
def engine(store: PolicyStore) -> PolicyEngine:
    """A decision engine over the sample store."""
    return PolicyEngine(store)
