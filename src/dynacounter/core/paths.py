"""Centralized path management for dynacounter."""

import os
from pathlib import Path

# Base directory, overridable for tests and CI
DYNACOUNTER_HOME = Path(os.environ.get("DYNACOUNTER_HOME", Path.home() / ".dynacounter"))

# Configuration file
CONFIG_FILE = DYNACOUNTER_HOME / "config.yaml"
