"""Shared constants for flowsync."""

LOCAL_ID_PREFIX = "tmp_"
DRAFT_KEY_PREFIX = "wf:draft:"

RETRY_ATTEMPTS_MIN = 1
RETRY_ATTEMPTS_MAX = 7
RETRY_DELAY_SECONDS_MIN = 1
RETRY_DELAY_SECONDS_MAX = 300

DEFAULT_RETRY_ATTEMPTS = 1
DEFAULT_RETRY_DELAY_SECONDS = 5
DEFAULT_REORDER_CONCURRENCY = 8

DEFAULT_STEPS_PATH = "/api/work-flow/steps"
DEFAULT_FLOW_PATH = "/api/work-flow/flow"
AUTH_HEADER = "mailer-auth-token"
