"""Lifecycle event records for agent-visualizer hooks.

Each builder turns raw hook stdin JSON (a dict) into an immutable event
record. Builders never raise on partial input: missing or ill-typed fields
are replaced by their documented defaults.
"""

import math
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

UNKNOWN = 'unknown'

AGENT_SPAWNED = 'AgentSpawned'
AGENT_COMPLETED = 'AgentCompleted'
SESSION_ENDED = 'SessionEnded'


def new_id():
    return str(uuid.uuid4())


def utc_timestamp():
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2026-01-01T12:00:00.000Z."""
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'


def _text_or(hook_data, key, default):
    """Return hook_data[key] if it is a non-empty string, else default.

    None, a missing key, an empty string and a non-string value are all
    treated as absent.
    """
    value = hook_data.get(key)
    if isinstance(value, str) and value:
        return value
    return default


def _text_or_none(hook_data, key):
    """Return hook_data[key] if it is a string (empty allowed), else None."""
    value = hook_data.get(key)
    return value if isinstance(value, str) else None


@dataclass(frozen=True)
class AgentSpawnedEvent:
    id: str
    timestamp: str
    session_id: str
    agent_id: str
    parent_session_id: Optional[str]
    agent_type: str
    model: str
    task_description: Optional[str]
    type: str = AGENT_SPAWNED

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class AgentCompletedEvent:
    id: str
    timestamp: str
    session_id: str
    agent_id: str
    transcript_path: Optional[str]
    result: Optional[str]
    type: str = AGENT_COMPLETED

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class SessionEndedEvent:
    id: str
    timestamp: str
    session_id: str
    reason: str
    summary: Optional[str]
    input_tokens: Optional[float] = None
    output_tokens: Optional[float] = None
    type: str = SESSION_ENDED

    def to_dict(self):
        data = asdict(self)
        # Token counts are only sent when the host reported them
        for key in ('input_tokens', 'output_tokens'):
            if data[key] is None:
                del data[key]
        return data


def build_agent_spawned(hook_data):
    """Build an AgentSpawned event from SubagentStart hook data.

    parent_session_id falls back to the input's session_id, then to None.
    Only None or a missing key moves to the next level, so an explicit
    empty string is kept.
    """
    parent_session_id = _text_or_none(hook_data, 'parent_session_id')
    if parent_session_id is None:
        parent_session_id = _text_or_none(hook_data, 'session_id')

    return AgentSpawnedEvent(
        id=new_id(),
        timestamp=utc_timestamp(),
        session_id=_text_or(hook_data, 'session_id', UNKNOWN),
        agent_id=_text_or(hook_data, 'agent_id', None) or new_id(),
        parent_session_id=parent_session_id,
        agent_type=_text_or(hook_data, 'agent_type', UNKNOWN),
        model=_text_or(hook_data, 'model', UNKNOWN),
        task_description=_text_or_none(hook_data, 'task_description'),
    )


def build_agent_completed(hook_data):
    """Build an AgentCompleted event from SubagentStop hook data."""
    return AgentCompletedEvent(
        id=new_id(),
        timestamp=utc_timestamp(),
        session_id=_text_or(hook_data, 'session_id', UNKNOWN),
        agent_id=_text_or(hook_data, 'agent_id', ''),
        transcript_path=_text_or_none(hook_data, 'transcript_path'),
        result=_text_or_none(hook_data, 'result'),
    )


def _token_count(hook_data, key):
    value = hook_data.get(key)
    # bool is an int subclass but never a token count
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    # NaN and infinity cannot be serialized as JSON
    if isinstance(value, float) and math.isfinite(value):
        return value
    return None


def build_session_ended(hook_data):
    """Build a SessionEnded event from Stop hook data."""
    return SessionEndedEvent(
        id=new_id(),
        timestamp=utc_timestamp(),
        session_id=_text_or(hook_data, 'session_id', UNKNOWN),
        reason=_text_or(hook_data, 'reason', 'stop'),
        summary=_text_or_none(hook_data, 'summary'),
        input_tokens=_token_count(hook_data, 'input_tokens'),
        output_tokens=_token_count(hook_data, 'output_tokens'),
    )
