from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProcessJobsRequest(BaseModel):
  """Optional body for the worker trigger; an empty body drains the queue."""

  job_id: str | None = Field(default=None, max_length=128)

  model_config = ConfigDict(extra="forbid")

  @field_validator("job_id")
  @classmethod
  def _strip_job_id(cls, value: str | None) -> str | None:
    if value is None:
      return None
    stripped = value.strip()
    return stripped or None


class ProcessJobsResponse(BaseModel):
  """Acknowledgement returned before background processing starts."""

  success: bool = True
  message: str
  request_id: str
