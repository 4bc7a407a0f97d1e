from __future__ import annotations

import pytest

from app.ai.backoff import RetryPolicy
from tests.support import InMemoryJobsRepo


# Force anyio to use asyncio
@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def fast_policy() -> RetryPolicy:
  return RetryPolicy(max_tries=2, base_delay=0.0, max_delay=0.0, timeout=5.0, jitter=0.0)


@pytest.fixture
def single_try_policy() -> RetryPolicy:
  return RetryPolicy(max_tries=1, base_delay=0.0, max_delay=0.0, timeout=5.0, jitter=0.0)


@pytest.fixture
def jobs_repo() -> InMemoryJobsRepo:
  return InMemoryJobsRepo()
