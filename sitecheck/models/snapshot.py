"""Immutable page capture consumed by the content assertion engine."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PageSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    title: str = ""
    content: str = ""  # serialized markup at capture time
    element_counts: dict[str, int] = Field(default_factory=dict)  # selector -> count
    visible_counts: dict[str, int] = Field(default_factory=dict)  # selector -> rendered and visible count
    captured_at: str = ""  # ISO timestamp
