"""Step and draft contracts for the flowsync builder."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .constants import (
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
    RETRY_ATTEMPTS_MAX,
    RETRY_ATTEMPTS_MIN,
    RETRY_DELAY_SECONDS_MAX,
    RETRY_DELAY_SECONDS_MIN,
)
from .errors import StepValidationError

DelayUnit = Literal["seconds", "minutes", "hours", "days", "weeks", "months"]
ActionKind = Literal[
    "send_email",
    "http_request",
    "move_to_list",
    "delete_from_current_list",
    "delete_subscriber",
]
StepKind = Literal["delay", "action"]
WireStep = Dict[str, Any]


def clamp_int(value: Any, low: int, high: int, default: int) -> int:
    """Coerce ``value`` to an int inside ``[low, high]``.

    Empty values fall back to ``default``; non-numeric values raise
    ``ValueError``.
    """
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValueError("expected a number")
    try:
        number = int(float(value))
    except (TypeError, OverflowError) as exc:
        raise ValueError(f"expected a number, got {value!r}") from exc
    return max(low, min(high, number))


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    @field_validator("title", mode="before", check_fields=False)
    @classmethod
    def _default_blank_title(cls, value: Any) -> Any:
        # blank titles fall back to the kind's default
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields["title"].default
        return value


class DelayPayload(_Payload):
    """Wait before running the next step."""

    title: str = "Wait"
    amount: Union[int, float] = Field(default=3, ge=0)
    unit: DelayUnit = "minutes"


class SendEmailAction(_Payload):
    action_kind: Literal["send_email"] = "send_email"
    title: str = "Send Mail"
    template_id: str = ""
    subject: str = ""
    sending_service_id: str = ""


class HttpRequestAction(_Payload):
    """Outgoing webhook call.

    Retry settings apply when the flow runs; out-of-range values are clamped
    rather than rejected.
    """

    action_kind: Literal["http_request"] = "http_request"
    title: str = "Outgoing Request"
    method: str = "POST"
    url: str = ""
    query: str = ""
    headers: str = ""
    body: str = ""
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay_seconds: int = DEFAULT_RETRY_DELAY_SECONDS

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> str:
        return str(value or "POST").strip().upper() or "POST"

    @field_validator("retry_attempts", mode="before")
    @classmethod
    def _clamp_attempts(cls, value: Any) -> int:
        return clamp_int(
            value, RETRY_ATTEMPTS_MIN, RETRY_ATTEMPTS_MAX, DEFAULT_RETRY_ATTEMPTS
        )

    @field_validator("retry_delay_seconds", mode="before")
    @classmethod
    def _clamp_delay(cls, value: Any) -> int:
        return clamp_int(
            value,
            RETRY_DELAY_SECONDS_MIN,
            RETRY_DELAY_SECONDS_MAX,
            DEFAULT_RETRY_DELAY_SECONDS,
        )


class MoveToListAction(_Payload):
    action_kind: Literal["move_to_list"] = "move_to_list"
    title: str = "Move to list"
    target_list_id: str = ""


class DeleteFromCurrentListAction(_Payload):
    action_kind: Literal["delete_from_current_list"] = "delete_from_current_list"
    title: str = "Remove from current list"


class DeleteSubscriberAction(_Payload):
    action_kind: Literal["delete_subscriber"] = "delete_subscriber"
    title: str = "Delete subscriber"


ActionPayload = Annotated[
    Union[
        SendEmailAction,
        HttpRequestAction,
        MoveToListAction,
        DeleteFromCurrentListAction,
        DeleteSubscriberAction,
    ],
    Field(discriminator="action_kind"),
]


class DelayStep(BaseModel):
    id: str
    kind: Literal["delay"] = "delay"
    payload: DelayPayload = Field(default_factory=DelayPayload)


class ActionStep(BaseModel):
    id: str
    kind: Literal["action"] = "action"
    payload: ActionPayload


Step = Annotated[Union[DelayStep, ActionStep], Field(discriminator="kind")]

step_adapter: TypeAdapter = TypeAdapter(Step)
step_list_adapter: TypeAdapter = TypeAdapter(List[Step])


class Draft(BaseModel):
    """Unsaved builder state persisted per flow."""

    steps_draft: Optional[List[Step]] = None
    automation_patch: Optional[Dict[str, Any]] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def build_step(step_id: str, kind: str, fields: Dict[str, Any] | None = None) -> Step:
    """Create a step of ``kind`` from default values overlaid with ``fields``.

    Actions default to ``send_email`` when no ``action_kind`` is given.
    """
    data = dict(fields or {})
    if kind == "action":
        data.setdefault("action_kind", "send_email")
    try:
        return step_adapter.validate_python({"id": step_id, "kind": kind, "payload": data})
    except ValidationError as exc:
        raise StepValidationError(f"Invalid {kind} step: {exc}") from exc


def apply_patch(step: Step, patch: Dict[str, Any]) -> Step:
    """Return ``step`` with ``patch`` merged into its payload.

    Switching ``action_kind`` starts from the new kind's defaults and keeps
    only the title.
    """
    payload = step.payload.model_dump()
    new_kind = patch.get("action_kind")
    if step.kind == "action" and new_kind and new_kind != payload["action_kind"]:
        payload = {"action_kind": new_kind, "title": payload["title"]}
    payload.update(patch)
    try:
        return step_adapter.validate_python(
            {"id": step.id, "kind": step.kind, "payload": payload}
        )
    except ValidationError as exc:
        raise StepValidationError(f"Invalid edit for step {step.id}: {exc}") from exc


__all__ = [
    "ActionKind",
    "ActionPayload",
    "ActionStep",
    "DelayPayload",
    "DelayStep",
    "DelayUnit",
    "DeleteFromCurrentListAction",
    "DeleteSubscriberAction",
    "Draft",
    "HttpRequestAction",
    "MoveToListAction",
    "SendEmailAction",
    "Step",
    "StepKind",
    "WireStep",
    "apply_patch",
    "build_step",
    "clamp_int",
    "step_adapter",
    "step_list_adapter",
]
