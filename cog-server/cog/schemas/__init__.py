"""Pydantic schemas used across the project."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ScriptCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, max_length=200)
    runtime: str
    code: str = ""
    webhook: bool = False
    cron: bool = False
    cron_schedule: Optional[str] = Field(default=None, alias="cronSchedule")
    timeout: Optional[int] = Field(default=None, gt=0, description="Execution window in milliseconds")


class ScriptUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: Optional[str] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    webhook: Optional[bool] = None
    cron: Optional[bool] = None
    cron_schedule: Optional[str] = Field(default=None, alias="cronSchedule")
    timeout: Optional[int] = Field(default=None, gt=0)


class ScriptIdResponse(BaseModel):
    id: Optional[str] = None


class ScriptSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    runtime: str


class MessageResponse(BaseModel):
    message: str


class RunResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    output: str
    output_error: str = Field(alias="outputError")
    exit_code: Optional[int] = Field(default=None, alias="exitCode")
    timed_out: bool = Field(default=False, alias="timedOut")
