"""Mapping between builder steps and the remote step schema."""

from __future__ import annotations

import logging
import random
import string
import time
from typing import Any, Dict, Iterable, List, Optional, get_args

from .constants import (
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY_SECONDS,
    LOCAL_ID_PREFIX,
    RETRY_ATTEMPTS_MAX,
    RETRY_ATTEMPTS_MIN,
    RETRY_DELAY_SECONDS_MAX,
    RETRY_DELAY_SECONDS_MIN,
)
from .contracts import (
    ActionStep,
    DelayPayload,
    DelayStep,
    DelayUnit,
    DeleteFromCurrentListAction,
    DeleteSubscriberAction,
    HttpRequestAction,
    MoveToListAction,
    SendEmailAction,
    Step,
    WireStep,
    clamp_int,
)

logger = logging.getLogger(__name__)

DELAY_UNITS = get_args(DelayUnit)


# ----------------------------------------------------------------------
# Identifiers
def new_local_id() -> str:
    """Return a placeholder id for a step that has not been created remotely."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=5))
    return f"{LOCAL_ID_PREFIX}{int(time.time() * 1000)}_{suffix}"


def is_local_id(step_id: Any) -> bool:
    return str(step_id).startswith(LOCAL_ID_PREFIX)


# ----------------------------------------------------------------------
# Query string and header helpers
def parse_query_params(query: str = "") -> List[Dict[str, str]]:
    """Split ``a=1&b=2`` into ``[{key, value, type}]`` entries.

    Only the first ``=`` separates key from value; blank segments are dropped.
    """
    params: List[Dict[str, str]] = []
    for segment in str(query or "").split("&"):
        segment = segment.strip()
        if not segment:
            continue
        key, _, value = segment.partition("=")
        params.append({"key": key.strip(), "value": value, "type": "static"})
    return params


def format_query_params(params: Iterable[Dict[str, Any]] | None) -> str:
    return "&".join(
        f"{p.get('key', '')}={p.get('value', '')}"
        for p in (params or [])
        if isinstance(p, dict)
    )


def parse_headers(headers: str = "") -> List[Dict[str, str]]:
    """Split ``Key: Value`` lines into ``[{key, value}]`` entries."""
    parsed: List[Dict[str, str]] = []
    for line in str(headers or "").splitlines():
        if not line.strip():
            continue
        key, _, value = line.partition(":")
        parsed.append({"key": key.strip(), "value": value.strip()})
    return parsed


def format_headers(headers: Iterable[Dict[str, Any]] | None) -> str:
    return "\n".join(
        f"{h.get('key', '')}: {h.get('value', '')}"
        for h in (headers or [])
        if isinstance(h, dict)
    )


# ----------------------------------------------------------------------
# Encoding
def encode(step: Step) -> WireStep:
    """Map ``step`` to the wire representation expected by the Step Service.

    The step id and position are not part of the encoded form.
    """
    payload = step.payload
    if isinstance(payload, DelayPayload):
        return {
            "stepType": "waitSubscriber",
            "title": payload.title,
            "waitDuration": payload.amount,
            "waitUnit": payload.unit or "minutes",
        }
    if isinstance(payload, SendEmailAction):
        return {
            "stepType": "sendMail",
            "title": payload.title,
            "sendMailTemplate": payload.template_id,
            "sendMailSubject": payload.subject,
            "sendingServiceId": payload.sending_service_id,
        }
    if isinstance(payload, HttpRequestAction):
        return {
            "stepType": "sendWebhook",
            "title": payload.title,
            "webhookUrl": payload.url,
            "requestMethod": payload.method.upper(),
            "retryAttempts": payload.retry_attempts,
            "retryAfterSeconds": payload.retry_delay_seconds,
            "queryParams": parse_query_params(payload.query),
            "requestHeaders": parse_headers(payload.headers),
            "requestBody": payload.body,
        }
    if isinstance(payload, MoveToListAction):
        return {
            "stepType": "moveSubscriber",
            "title": payload.title,
            "targetListId": payload.target_list_id or None,
        }
    if isinstance(payload, DeleteFromCurrentListAction):
        return {
            "stepType": "removeSubscriber",
            "title": payload.title,
        }
    if isinstance(payload, DeleteSubscriberAction):
        return {
            "stepType": "deleteSubscriber",
            "title": payload.title,
        }
    raise TypeError(f"Unhandled step payload: {type(payload).__name__}")


def steps_equal(left: Step, right: Step) -> bool:
    """Compare two steps by their encoded form."""
    return encode(left) == encode(right)


# ----------------------------------------------------------------------
# Decoding
def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _amount(value: Any) -> int | float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number or number < 0:  # NaN or negative
        return 0
    return int(number) if number.is_integer() else number


def _bounded(value: Any, low: int, high: int, default: int) -> int:
    try:
        return clamp_int(value, low, high, default)
    except ValueError:
        return default


def _decode_delay(wire: WireStep) -> DelayStep:
    unit = wire.get("waitUnit")
    return DelayStep(
        id=_text(wire.get("_id")),
        payload=DelayPayload(
            title=_text(wire.get("title"), "Wait"),
            amount=_amount(wire.get("waitDuration")),
            unit=unit if unit in DELAY_UNITS else "minutes",
        ),
    )


def _decode_send_mail(wire: WireStep) -> ActionStep:
    return ActionStep(
        id=_text(wire.get("_id")),
        payload=SendEmailAction(
            title=_text(wire.get("title"), "Send Mail"),
            template_id=_text(wire.get("sendMailTemplate")),
            subject=_text(wire.get("sendMailSubject")),
            sending_service_id=_text(wire.get("sendingServiceId")),
        ),
    )


def _decode_webhook(wire: WireStep) -> ActionStep:
    query = wire.get("queryParams")
    headers = wire.get("requestHeaders")
    return ActionStep(
        id=_text(wire.get("_id")),
        payload=HttpRequestAction(
            title=_text(wire.get("title"), "Outgoing Request"),
            method=_text(wire.get("requestMethod"), "POST"),
            url=_text(wire.get("webhookUrl")),
            query=format_query_params(query if isinstance(query, list) else []),
            headers=format_headers(headers if isinstance(headers, list) else []),
            body=_text(wire.get("requestBody")),
            retry_attempts=_bounded(
                wire.get("retryAttempts"),
                RETRY_ATTEMPTS_MIN,
                RETRY_ATTEMPTS_MAX,
                DEFAULT_RETRY_ATTEMPTS,
            ),
            retry_delay_seconds=_bounded(
                wire.get("retryAfterSeconds"),
                RETRY_DELAY_SECONDS_MIN,
                RETRY_DELAY_SECONDS_MAX,
                DEFAULT_RETRY_DELAY_SECONDS,
            ),
        ),
    )


def _decode_move(wire: WireStep) -> ActionStep:
    return ActionStep(
        id=_text(wire.get("_id")),
        payload=MoveToListAction(
            title=_text(wire.get("title"), "Move to list"),
            target_list_id=_text(wire.get("targetListId")),
        ),
    )


def _decode_remove(wire: WireStep) -> ActionStep:
    return ActionStep(
        id=_text(wire.get("_id")),
        payload=DeleteFromCurrentListAction(
            title=_text(wire.get("title"), "Remove from current list")
        ),
    )


def _decode_delete(wire: WireStep) -> ActionStep:
    return ActionStep(
        id=_text(wire.get("_id")),
        payload=DeleteSubscriberAction(
            title=_text(wire.get("title"), "Delete subscriber")
        ),
    )


_DECODERS = {
    "waitSubscriber": _decode_delay,
    "sendMail": _decode_send_mail,
    "sendWebhook": _decode_webhook,
    "moveSubscriber": _decode_move,
    "removeSubscriber": _decode_remove,
    "deleteSubscriber": _decode_delete,
}


def decode(wire: WireStep) -> Optional[Step]:
    """Map a wire step to a builder step.

    Returns ``None`` for step types the builder cannot represent.
    """
    decoder = _DECODERS.get(wire.get("stepType"))
    if decoder is None:
        logger.debug(f"Skipping step {wire.get('_id')} with unknown type {wire.get('stepType')!r}")
        return None
    return decoder(wire)


def _step_count(wire: WireStep) -> float:
    try:
        return float(wire.get("stepCount") or 0)
    except (TypeError, ValueError):
        return 0


def decode_sequence(wires: Iterable[WireStep]) -> List[Step]:
    """Sort wire steps by ``stepCount`` and decode them, dropping unknown types."""
    ordered = sorted(wires, key=_step_count)
    return [step for step in (decode(w) for w in ordered) if step is not None]


__all__ = [
    "WireStep",
    "decode",
    "decode_sequence",
    "encode",
    "format_headers",
    "format_query_params",
    "is_local_id",
    "new_local_id",
    "parse_headers",
    "parse_query_params",
    "steps_equal",
]
