"""Validation of events posted to the ingestion server."""

import json

from core.events import AGENT_COMPLETED, AGENT_SPAWNED, SESSION_ENDED

# Every event type the visualizer accepts, including those sent by hooks
# that live outside this repo
VALID_EVENT_TYPES = {
    AGENT_SPAWNED,
    AGENT_COMPLETED,
    'ToolCallStarted',
    'ToolCallCompleted',
    'ToolCallFailed',
    'MessageSent',
    'SessionStarted',
    SESSION_ENDED,
    'UserPrompt',
    'WaitingForUser',
    'ContextCompaction',
}

MAX_ID_LENGTH = 256
MAX_TIMESTAMP_LENGTH = 64
MAX_SESSION_ID_LENGTH = 256
MAX_PAYLOAD_SIZE = 64 * 1024


class InvalidEventError(ValueError):
    """Posted body is not an acceptable event."""


def validate_event(body):
    """Check the shape shared by every event and return body unchanged.

    Raises:
        InvalidEventError: with a message suitable for the 400 response
    """
    if not isinstance(body, dict):
        raise InvalidEventError('Request body must be a JSON object')

    event_id = body.get('id')
    if not isinstance(event_id, str) or not event_id:
        raise InvalidEventError('Missing or invalid "id" field')
    if not isinstance(body.get('type'), str):
        raise InvalidEventError('Missing or invalid "type" field')
    if not isinstance(body.get('timestamp'), str):
        raise InvalidEventError('Missing or invalid "timestamp" field')
    if not isinstance(body.get('session_id'), str):
        raise InvalidEventError('Missing or invalid "session_id" field')

    if len(event_id) > MAX_ID_LENGTH:
        raise InvalidEventError(f'"id" exceeds maximum length of {MAX_ID_LENGTH} characters')
    if len(body['timestamp']) > MAX_TIMESTAMP_LENGTH:
        raise InvalidEventError(f'"timestamp" exceeds maximum length of {MAX_TIMESTAMP_LENGTH} characters')
    if len(body['session_id']) > MAX_SESSION_ID_LENGTH:
        raise InvalidEventError(f'"session_id" exceeds maximum length of {MAX_SESSION_ID_LENGTH} characters')

    if body['type'] not in VALID_EVENT_TYPES:
        raise InvalidEventError(f'Unknown event type: "{body["type"]}"')

    if len(json.dumps(body)) > MAX_PAYLOAD_SIZE:
        raise InvalidEventError('Event payload exceeds maximum size')

    return body
