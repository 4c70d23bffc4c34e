"""Tests for the step wire codec."""

import pytest
from pydantic import ValidationError

from flowsync.codec import (
    decode,
    decode_sequence,
    encode,
    format_headers,
    is_local_id,
    new_local_id,
    parse_headers,
    parse_query_params,
    steps_equal,
)
from flowsync.contracts import ActionStep, DelayPayload, DelayStep, HttpRequestAction, build_step
from flowsync.errors import StepValidationError


def _round_trip(step):
    return decode({"_id": step.id, **encode(step)})


@pytest.mark.parametrize(
    "kind,fields",
    [
        ("delay", {"amount": 3, "unit": "minutes"}),
        ("delay", {"title": "", "amount": 3}),
        ("action", {"action_kind": "delete_subscriber", "title": "  "}),
        ("delay", {"title": "Cool down", "amount": 1.5, "unit": "days"}),
        ("action", {"template_id": "tpl1", "subject": "Hi", "sending_service_id": "ses"}),
        (
            "action",
            {
                "action_kind": "http_request",
                "method": "put",
                "url": "https://hooks.example.com/x",
                "query": "a=1&b=two",
                "headers": "X-Token: abc\nX-Mode: test",
                "body": '{"ok": true}',
                "retry_attempts": 3,
                "retry_delay_seconds": 60,
            },
        ),
        ("action", {"action_kind": "move_to_list", "target_list_id": "list42"}),
        ("action", {"action_kind": "delete_from_current_list"}),
        ("action", {"action_kind": "delete_subscriber"}),
    ],
)
def test_encode_decode_preserves_step(kind, fields):
    step = build_step("64f000000000000000000001", kind, fields)
    assert _round_trip(step) == step


def test_encode_uses_remote_field_names():
    step = build_step(
        "s1",
        "action",
        {
            "action_kind": "http_request",
            "url": "https://example.com",
            "query": "page=2",
            "headers": "Accept: text/plain",
            "retry_attempts": 2,
        },
    )
    wire = encode(step)
    assert wire == {
        "stepType": "sendWebhook",
        "title": "Outgoing Request",
        "webhookUrl": "https://example.com",
        "requestMethod": "POST",
        "retryAttempts": 2,
        "retryAfterSeconds": 5,
        "queryParams": [{"key": "page", "value": "2", "type": "static"}],
        "requestHeaders": [{"key": "Accept", "value": "text/plain"}],
        "requestBody": "",
    }
    assert "_id" not in wire
    assert "stepCount" not in wire


def test_encode_delay_and_empty_move_target():
    delay = DelayStep(id="d1")
    assert encode(delay) == {
        "stepType": "waitSubscriber",
        "title": "Wait",
        "waitDuration": 3,
        "waitUnit": "minutes",
    }
    move = build_step("m1", "action", {"action_kind": "move_to_list"})
    assert encode(move)["targetListId"] is None


def test_decode_unknown_step_type_is_skipped():
    assert decode({"_id": "x", "stepType": "sendSms", "title": "SMS"}) is None
    assert decode({"_id": "y"}) is None


def test_decode_is_lenient_with_bad_values():
    delay = decode({"_id": "d", "stepType": "waitSubscriber", "waitDuration": -4, "waitUnit": "fortnights"})
    assert delay.payload == DelayPayload(amount=0, unit="minutes")

    hook = decode(
        {
            "_id": "h",
            "stepType": "sendWebhook",
            "retryAttempts": "lots",
            "retryAfterSeconds": 100000,
            "queryParams": "not-a-list",
        }
    )
    assert isinstance(hook, ActionStep)
    assert hook.payload.retry_attempts == 1
    assert hook.payload.retry_delay_seconds == 300
    assert hook.payload.query == ""
    assert hook.payload.method == "POST"


def test_decode_sequence_orders_by_step_count_and_drops_unknown():
    wires = [
        {"_id": "c", "stepType": "deleteSubscriber", "stepCount": 3},
        {"_id": "a", "stepType": "waitSubscriber", "stepCount": 1},
        {"_id": "x", "stepType": "mystery", "stepCount": 2},
        {"_id": "b", "stepType": "sendMail", "stepCount": "2"},
    ]
    assert [s.id for s in decode_sequence(wires)] == ["a", "b", "c"]


def test_query_params_split_on_first_equals():
    assert parse_query_params("token=a=b&&flag=") == [
        {"key": "token", "value": "a=b", "type": "static"},
        {"key": "flag", "value": "", "type": "static"},
    ]
    assert parse_query_params("") == []


def test_headers_skip_blank_lines():
    parsed = parse_headers("Accept: */*\n\n  \nX-Url: http://a:1")
    assert parsed == [
        {"key": "Accept", "value": "*/*"},
        {"key": "X-Url", "value": "http://a:1"},
    ]
    assert format_headers(parsed) == "Accept: */*\nX-Url: http://a:1"


@pytest.mark.parametrize(
    "attempts,delay,expected",
    [
        (99, 1000, (7, 300)),
        (0, 0, (1, 1)),
        (-3, -1, (1, 1)),
        ("4", "30", (4, 30)),
        (None, "", (1, 5)),
        (2.9, 12.2, (2, 12)),
    ],
)
def test_retry_settings_are_clamped(attempts, delay, expected):
    action = HttpRequestAction(retry_attempts=attempts, retry_delay_seconds=delay)
    assert (action.retry_attempts, action.retry_delay_seconds) == expected


def test_non_numeric_retry_is_rejected():
    with pytest.raises(ValidationError):
        HttpRequestAction(retry_attempts="often")
    with pytest.raises(StepValidationError):
        build_step("s", "action", {"action_kind": "http_request", "retry_attempts": True})


def test_build_step_rejects_unknown_fields_and_kinds():
    with pytest.raises(StepValidationError):
        build_step("s", "delay", {"amount": 1, "colour": "red"})
    with pytest.raises(StepValidationError):
        build_step("s", "delay", {"unit": "fortnights"})
    with pytest.raises(StepValidationError):
        build_step("s", "branch", {})


def test_steps_equal_ignores_id():
    left = build_step("a", "delay", {"amount": 2})
    right = build_step("b", "delay", {"amount": 2})
    assert steps_equal(left, right)
    assert not steps_equal(left, build_step("a", "delay", {"amount": 3}))


def test_local_ids():
    ids = {new_local_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(is_local_id(i) for i in ids)
    assert not is_local_id("64f000000000000000000001")


def test_blank_title_uses_kind_default():
    assert build_step("d", "delay", {"title": ""}).payload.title == "Wait"
    assert encode(build_step("h", "action", {"action_kind": "http_request", "title": None}))["title"] == "Outgoing Request"
    assert decode({"_id": "m", "stepType": "moveSubscriber", "title": ""}).payload.title == "Move to list"


def test_decode_skips_malformed_list_entries():
    hook = decode(
        {
            "_id": "h",
            "stepType": "sendWebhook",
            "queryParams": ["a=1", None, {"key": "b", "value": "2"}],
            "requestHeaders": [None, 7, {"key": "Accept", "value": "*/*"}],
        }
    )
    assert hook.payload.query == "b=2"
    assert hook.payload.headers == "Accept: */*"

    steps = decode_sequence(
        [{"_id": "h", "stepType": "sendWebhook", "stepCount": 1, "queryParams": [None], "requestHeaders": ["x"]}]
    )
    assert [s.id for s in steps] == ["h"]
    assert steps[0].payload.query == ""
