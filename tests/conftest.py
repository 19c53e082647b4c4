"""
Brief: Shared pytest configuration for dnsprobe tests.

Inputs:
  - None

Outputs:
  - None
"""

import os
import sys

import pytest

# Ensure 'src' is on sys.path so 'dnsprobe' is importable without installing
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from dnsprobe.config import ProbeConfig, set_config  # noqa: E402
from dnsprobe.logging_config import reset_error_stats  # noqa: E402


@pytest.fixture(autouse=True)
def default_config():
    """
    Brief: Give every test a default configuration and clean error counters.

    Inputs:
      - None

    Outputs:
      - ProbeConfig: the active configuration
    """
    config = ProbeConfig()
    set_config(config)
    reset_error_stats()
    yield config
    set_config(None)
