# gridsync/models/schemas.py
import json
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

MAX_CONTENT_LENGTH = 2


class MalformedIntent(ValueError):
    """A frame that is not JSON or does not match any intent shape."""


class Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> dict:
        return self.model_dump(by_alias=True)


class InitMessage(Message):
    type: Literal["init"] = "init"
    blocks: list[dict]


class UpdateIntent(Message):
    type: Literal["update"] = "update"
    block_id: StrictInt
    content: Annotated[StrictStr, Field(max_length=MAX_CONTENT_LENGTH)]
    device_id: Optional[StrictStr] = None


class LockIntent(Message):
    type: Literal["lock"] = "lock"
    block_id: StrictInt
    device_id: Optional[StrictStr] = None


class ClearIntent(Message):
    type: Literal["clear"] = "clear"
    device_id: Optional[StrictStr] = None


class MoveIntent(Message):
    type: Literal["move"] = "move"
    from_id: StrictInt
    to_id: StrictInt
    device_id: Optional[StrictStr] = None


class MoveMessage(MoveIntent):
    """Server echo of an applied move; carries the relocated text."""

    content: str = ""


Intent = Annotated[
    Union[UpdateIntent, LockIntent, ClearIntent, MoveIntent],
    Field(discriminator="type"),
]

INTENT_TYPES = ("update", "lock", "clear", "move")

_intent_adapter = TypeAdapter(Intent)


def parse_intent(raw) -> Union[UpdateIntent, LockIntent, ClearIntent, MoveIntent]:
    """
    Turn a client frame into a typed intent.

    `raw` may be a JSON text/bytes frame or an already decoded dict (the
    Socket.IO transport hands over decoded payloads). Anything else, or a
    payload that does not fit one of the intent shapes, raises MalformedIntent.
    """
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedIntent(f"frame is not JSON: {e}") from e
    if not isinstance(raw, dict):
        raise MalformedIntent("frame is not a JSON object")
    if raw.get("type") not in INTENT_TYPES:
        raise MalformedIntent(f"unknown intent type: {raw.get('type')!r}")
    try:
        return _intent_adapter.validate_python(raw)
    except ValidationError as e:
        raise MalformedIntent(str(e)) from e
