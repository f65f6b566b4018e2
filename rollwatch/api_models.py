from __future__ import annotations

from pydantic import BaseModel, Field


class NormalizeRequest(BaseModel):
    cpu: str | None = Field(None, description="CPU quantity, e.g. 0.5 or 500m")
    memory: str | None = Field(None, description="Memory quantity, e.g. 1.1Gi or 512M")


class NormalizeResponse(BaseModel):
    cpu: str | None = None
    milli_cpu: int | None = None
    memory: str | None = None
    memory_bytes: int | None = None


class ReadyWaitRequest(BaseModel):
    selector: dict[str, str] = Field(..., min_length=1, description="Pod label selector")
    expected_count: int = Field(..., ge=1, le=1000)
    check_containers: bool = True


class StabilityWaitRequest(BaseModel):
    prefix: str = Field(..., min_length=1, description="Pod name prefix")


class DeletionWaitRequest(BaseModel):
    name: str = Field(..., min_length=1, description="Pod name")


class WaitStarted(BaseModel):
    id: str
