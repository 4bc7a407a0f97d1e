"""Identifier utilities."""

from __future__ import annotations

import os
import socket
import uuid


def generate_request_id() -> str:
  """Return a new request identifier for one worker trigger."""
  return str(uuid.uuid4())


def generate_worker_id() -> str:
  """Return a lease-owner id like ``worker-<host>-<pid>-<suffix>``, unique per run."""
  host = socket.gethostname().split(".")[0] or "local"
  return f"worker-{host}-{os.getpid()}-{uuid.uuid4().hex[:8]}"
