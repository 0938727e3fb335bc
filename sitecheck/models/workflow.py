"""API workflow data structures: steps, remote resources and results."""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, Field, field_validator


class ResponseCheck(BaseModel):
    path: str  # dotted path into the JSON body, "*" fans out over lists
    op: str = "exists"  # exists, equals, contains, icontains, any_contains, min_length, greater_than
    value: Any = None
    description: str = ""


class WorkflowStep(BaseModel):
    name: str
    method: str = "GET"
    endpoint: str  # absolute URL or path relative to the workflow base_url; may hold {{vars}}
    credential: Optional[str] = None  # name of a configured bearer credential
    headers: dict[str, str] = Field(default_factory=dict)
    body: Optional[Union[dict[str, Any], list[Any], str]] = None
    expect: str = "2xx"  # status class ("2xx", "4xx") or exact code ("401")
    checks: list[ResponseCheck] = Field(default_factory=list)
    bind: dict[str, str] = Field(default_factory=dict)  # variable -> JSON path
    creates: Optional[str] = None  # resource kind created by this step
    id_field: str = "id"  # JSON path of the created resource's identifier
    releases: Optional[str] = None  # resource kind deleted by this (cleanup) step
    verify_gone: bool = False  # re-read the endpoint after delete, expect 404
    timeout_ms: int = 15000

    @field_validator("method")
    @classmethod
    def upper_method(cls, v: str) -> str:
        return v.upper()

    @field_validator("expect")
    @classmethod
    def check_expect(cls, v: str) -> str:
        v = v.lower()
        if len(v) == 3 and (v.isdigit() or (v[0] in "12345" and v[1:] == "xx")):
            return v
        raise ValueError(f"expect must be a status class like '2xx' or a code like '401', got {v!r}")


class Workflow(BaseModel):
    name: str
    description: str = ""
    base_url: str = ""
    steps: list[WorkflowStep] = Field(default_factory=list)
    cleanup: list[WorkflowStep] = Field(default_factory=list)
    timeout_seconds: float = 60


class RemoteResource(BaseModel):
    kind: str
    resource_id: str
    created_by_step: int
    deleted: bool = False
    verified: bool = False


class WorkflowStepResult(BaseModel):
    step_index: int
    name: str
    method: str
    url: str
    expected: str
    status: Optional[int] = None
    passed: bool = False
    phase: str = "step"  # step, cleanup
    message: str = ""
    duration_ms: int = 0


class WorkflowResult(BaseModel):
    name: str
    state: str = "pending"  # pending, executing, completed, failed
    failed_step: Optional[int] = None
    error_kind: Optional[str] = None  # assertion, remote, timeout, configuration, error
    error_message: Optional[str] = None
    step_results: list[WorkflowStepResult] = Field(default_factory=list)
    resources: list[RemoteResource] = Field(default_factory=list)
    leaks: list[str] = Field(default_factory=list)
    variables: dict[str, Any] = Field(default_factory=dict)

    @property
    def passed(self) -> bool:
        return self.state == "completed" and not self.leaks
