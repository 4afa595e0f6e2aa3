from __future__ import annotations
import os

ARTIFACT_STORE = os.environ.get("WHEELCI_ARTIFACT_STORE", ".wheelci/artifacts")
BINARY_ARTIFACT_PREFIX = os.environ.get("WHEELCI_BINARY_ARTIFACT_PREFIX", "pixi")
LOGS_ARTIFACT_PREFIX = os.environ.get("WHEELCI_LOGS_ARTIFACT_PREFIX", "wheel-tests-logs")
STATE_DIR = ".wheelci"

# Read by `wheelci run --timeout-minutes`; unset means the workflow's own ceiling
TIMEOUT_MINUTES_ENV = "WHEELCI_TIMEOUT_MINUTES"
