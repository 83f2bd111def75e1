"""Decoding of wire records into typed messages.

All functions here are pure: they take one record (raw bytes, a str, or an
already parsed dict) and return a model or raise. They never log.

Failure modes:
    DecodeError        not JSON, not an object, bad/missing ``type`` or
                       a field that violates the schema
    MessageParseError  valid record whose ``type``/``subtype`` is unknown
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any, TypeVar

from pydantic import ValidationError

from ..errors import DecodeError, MessageParseError
from .control import (
    CONTROL_REQUEST_TYPES,
    CONTROL_RESPONSE_TYPES,
    ControlRequest,
    ControlResponse,
)
from .messages import (
    AssistantMessage,
    ContentBlock,
    ContentBlockType,
    ContentMessage,
    MessageType,
    Record,
    ResultMessage,
    StreamEvent,
    SystemMessage,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
)

RawRecord = bytes | bytearray | str | dict[str, Any]
Message = ContentMessage | ControlRequest | ControlResponse

M = TypeVar("M", bound=Record)

# Longest slice of a bad record kept on the error for diagnostics
RAW_PREVIEW_LENGTH = 200

MESSAGE_TYPES: dict[str, type[Record]] = {
    MessageType.USER.value: UserMessage,
    MessageType.ASSISTANT.value: AssistantMessage,
    MessageType.SYSTEM.value: SystemMessage,
    MessageType.RESULT.value: ResultMessage,
    MessageType.STREAM_EVENT.value: StreamEvent,
}

CONTENT_BLOCK_TYPES: dict[str, type[Record]] = {
    ContentBlockType.TEXT.value: TextBlock,
    ContentBlockType.THINKING.value: ThinkingBlock,
    ContentBlockType.TOOL_USE.value: ToolUseBlock,
    ContentBlockType.TOOL_RESULT.value: ToolResultBlock,
}


def decode_type(record: RawRecord) -> str:
    """Extract the ``type`` discriminator of a record.

    Raises:
        DecodeError: If the record is not a JSON object or ``type`` is
            absent, null or not a string
    """
    data = _load_object(record)
    return _type_of(data, record)


def decode_message(record: RawRecord) -> Message:
    """Decode one wire record into its typed message.

    Raises:
        DecodeError: On malformed records
        MessageParseError: On an unknown ``type`` or control ``subtype``
    """
    data = _load_object(record)
    message_type = _type_of(data, record)

    if message_type == MessageType.CONTROL_REQUEST.value:
        return _decode_control_request(data, record)
    if message_type == MessageType.CONTROL_RESPONSE.value:
        return _decode_control_response(data, record)

    model = MESSAGE_TYPES.get(message_type)
    if model is None:
        raise MessageParseError("unknown message type", message_type)

    if model is UserMessage or model is AssistantMessage:
        data = _with_content(data, record)
    return _validate(model, data, f"{message_type} message", record)


def decode_content_block(record: RawRecord) -> ContentBlock:
    """Decode one content block.

    Raises:
        DecodeError: On malformed blocks
        MessageParseError: On an unknown block type
    """
    data = _load_object(record)
    block_type = _type_of(data, record)
    model = CONTENT_BLOCK_TYPES.get(block_type)
    if model is None:
        raise MessageParseError("unknown content block type", block_type)
    return _validate(model, data, f"{block_type} block", record)


def decode_content_blocks(records: Iterable[RawRecord]) -> list[ContentBlock]:
    """Decode an array of content blocks, failing on the first bad element.

    The raised error carries ``index`` and names it in its message.
    """
    blocks = []
    for index, record in enumerate(records):
        try:
            blocks.append(decode_content_block(record))
        except (DecodeError, MessageParseError) as e:
            raise e.at_index(index) from e
    return blocks


def request_id_of(record: RawRecord) -> str | None:
    """Best-effort ``request_id`` of a control request, or None.

    Used to answer control requests that failed to decode.
    """
    try:
        data = _load_object(record)
    except DecodeError:
        return None
    request_id = data.get("request_id")
    return request_id if isinstance(request_id, str) and request_id else None


# =============================================================================
# Helpers
# =============================================================================


def _preview(record: RawRecord) -> str:
    if isinstance(record, (bytes, bytearray)):
        text = bytes(record).decode("utf-8", errors="replace")
    elif isinstance(record, str):
        text = record
    else:
        text = repr(record)
    if len(text) > RAW_PREVIEW_LENGTH:
        return text[:RAW_PREVIEW_LENGTH] + "..."
    return text


def _load_object(record: RawRecord) -> dict[str, Any]:
    if isinstance(record, dict):
        return record
    if not isinstance(record, (bytes, bytearray, str)):
        raise DecodeError("record is not a JSON object", _preview(record))
    try:
        data = json.loads(record)
    except ValueError as e:
        raise DecodeError(f"invalid JSON: {e}", _preview(record)) from e
    except RecursionError as e:
        # A record under the size limit can still nest past the parser's depth
        raise DecodeError("invalid JSON: nesting too deep", _preview(record)) from e
    if not isinstance(data, dict):
        raise DecodeError("record is not a JSON object", _preview(record))
    return data


def _type_of(data: dict[str, Any], record: RawRecord) -> str:
    value = data.get("type")
    if not isinstance(value, str):
        raise DecodeError("type field missing or invalid", _preview(record))
    return value


def _validate(model: type[M], data: dict[str, Any], what: str, record: RawRecord) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or '<root>'}: {err['msg']}"
            for err in e.errors()
        )
        raise DecodeError(f"invalid {what}: {problems}", _preview(record)) from e
    except RecursionError as e:
        raise DecodeError(f"invalid {what}: nesting too deep", _preview(record)) from e


def _with_content(data: dict[str, Any], record: RawRecord) -> dict[str, Any]:
    """Resolve user/assistant content, probing string first, then array.

    Live agent output nests content and model under ``message``; those are
    used when the top-level fields are absent.
    """
    payload = dict(data)
    nested = data.get("message")
    if isinstance(nested, dict):
        if "content" not in payload and "content" in nested:
            payload["content"] = nested["content"]
        if "model" not in payload and "model" in nested:
            payload["model"] = nested["model"]

    content = payload.get("content")
    if isinstance(content, str):
        return payload
    if isinstance(content, list):
        for index, item in enumerate(content):
            if not isinstance(item, dict):
                raise DecodeError(
                    f"failed to parse content block at index {index}: block is not a JSON object",
                    _preview(record),
                    index=index,
                )
        payload["content"] = decode_content_blocks(content)
        return payload
    raise DecodeError("content must be a string or an array of content blocks", _preview(record))


def _decode_control_request(data: dict[str, Any], record: RawRecord) -> ControlRequest:
    request = data.get("request")
    if not isinstance(request, dict):
        raise DecodeError("control request payload missing or invalid", _preview(record))
    subtype = request.get("subtype")
    if not isinstance(subtype, str):
        raise DecodeError("control request subtype missing or invalid", _preview(record))
    model = CONTROL_REQUEST_TYPES.get(subtype)
    if model is None:
        raise MessageParseError("unknown control request subtype", subtype)
    payload = _validate(model, request, f"{subtype} control request", record)
    return _validate(ControlRequest, {**data, "request": payload}, "control request", record)


def _decode_control_response(data: dict[str, Any], record: RawRecord) -> ControlResponse:
    response = data.get("response")
    if not isinstance(response, dict):
        raise DecodeError("control response payload missing or invalid", _preview(record))
    subtype = response.get("subtype")
    if not isinstance(subtype, str):
        raise DecodeError("control response subtype missing or invalid", _preview(record))
    model = CONTROL_RESPONSE_TYPES.get(subtype)
    if model is None:
        raise MessageParseError("unknown control response subtype", subtype)
    payload = _validate(model, response, f"{subtype} control response", record)
    return _validate(ControlResponse, {**data, "response": payload}, "control response", record)
