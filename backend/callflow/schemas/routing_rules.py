"""Request/response schemas for call routing rules."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from callflow.services.routing.models import (
    MAX_PRIORITY,
    MIN_PRIORITY,
    SCHEDULE_CONDITIONS,
    ActionType,
    RuleAction,
    Schedule,
    TriggerCondition,
)


class RoutingRuleCreate(BaseModel):
    phone_line_id: uuid.UUID
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    priority: int = Field(default=0, ge=MIN_PRIORITY, le=MAX_PRIORITY, description="Higher is evaluated first")
    is_active: bool = True
    condition: TriggerCondition
    schedule: Schedule | None = None
    no_answer_rings: int = Field(default=3, ge=1, le=10)
    action: RuleAction

    @model_validator(mode="after")
    def _schedule_for_time_conditions(self) -> "RoutingRuleCreate":
        if self.condition in SCHEDULE_CONDITIONS and self.schedule is None:
            raise ValueError(f"schedule is required when condition is '{self.condition.value}'")
        return self


class RoutingRuleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    priority: int | None = Field(default=None, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    is_active: bool | None = None
    condition: TriggerCondition | None = None
    schedule: Schedule | None = None
    no_answer_rings: int | None = Field(default=None, ge=1, le=10)
    action: dict[str, Any] | None = Field(
        default=None,
        description="Partial action. Fields merge into the current action unless 'type' changes.",
    )


class RoutingRuleSearch(BaseModel):
    phone_line_id: uuid.UUID | None = None
    condition: TriggerCondition | None = None
    action_type: ActionType | None = None
    is_active: bool | None = None
    include_inactive: bool = False


class RoutingRuleReorder(BaseModel):
    phone_line_id: uuid.UUID
    rule_ids: list[uuid.UUID] = Field(..., min_length=1, description="All rule ids of the line, first = highest")


class RoutingRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    phone_line_id: uuid.UUID
    name: str
    description: str | None
    priority: int
    position: int
    is_active: bool
    condition: str
    schedule: dict[str, Any] | None
    no_answer_rings: int
    action: dict[str, Any]
    triggered_count: int
    last_triggered: datetime | None
    created_at: datetime
    updated_at: datetime


class RoutingRuleListResponse(BaseModel):
    rules: list[RoutingRuleResponse]
    total: int


class ReorderResponse(BaseModel):
    success: bool
