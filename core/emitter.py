"""Fire-and-forget delivery of lifecycle events to the visualizer server.

emit() reads one JSON payload, builds an event and makes a single POST
attempt bounded by the configured timeout. It never raises: the caller is a
hook running inside the agent's spawn path and must not be slowed down or
broken by telemetry.
"""

import asyncio
import enum
import json

import httpx

from core.hook_log import append_error


class EmitOutcome(enum.Enum):
    # Delivery was attempted; it may still have failed or timed out.
    SENT = 'sent'
    # Input was unusable; no event was built and no request was made.
    DROPPED = 'dropped'


def read_payload(stream):
    """Read stream and decode a JSON object, or return None.

    Read errors, invalid JSON and JSON values that are not objects all
    yield None.
    """
    try:
        raw = stream.read()
        data = json.loads(raw)
    except (OSError, ValueError, RecursionError):
        return None
    if not isinstance(data, dict):
        return None
    return data


def post_event(event, config, transport=None):
    """POST one event to config.server_url within a single deadline.

    config.timeout bounds the whole request, from connecting to reading the
    last response byte. Returns True when the server answered 2xx.
    Transport errors, the deadline, error statuses and malformed URLs return
    False and are recorded in the hook error log.
    """
    try:
        return asyncio.run(_post(event, config, transport))
    except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as exc:
        append_error(
            config.error_log_path, 'emitter',
            f'{event.type} {event.id} not delivered to {config.server_url!r}: {exc!r}',
        )
        return False


async def _post(event, config, transport):
    async with httpx.AsyncClient(transport=transport, timeout=config.timeout) as client:
        request = client.post(
            config.server_url,
            content=json.dumps(event.to_dict()),
            headers={'Content-Type': 'application/json'},
        )
        response = await asyncio.wait_for(request, config.timeout)
    response.raise_for_status()
    return True


def emit(stream, config, build_event, transport=None):
    """Build an event from stream with build_event and attempt delivery once.

    Args:
        stream: text stream holding the hook's JSON input (usually sys.stdin)
        config: EmitterConfig resolved at hook startup
        build_event: callable turning the decoded dict into an event record
        transport: optional httpx transport for the request

    Returns:
        EmitOutcome.SENT if delivery was attempted, EmitOutcome.DROPPED if
        the input could not be decoded.
    """
    hook_data = read_payload(stream)
    if hook_data is None:
        return EmitOutcome.DROPPED

    event = build_event(hook_data)
    post_event(event, config, transport=transport)
    return EmitOutcome.SENT
