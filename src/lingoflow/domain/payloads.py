"""
Typed views over the opaque JSON payload of a `UsageEvent`.

The payload stays a plain string at the storage boundary; code that needs
fields from it decodes through these models.
"""

import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import UsageEvent, UsageEventType


class ReviewPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_id: str = Field(alias="cardId")
    grade: int


class GenerationPayload(BaseModel):
    term: str


class TranscribePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_id: str | None = Field(default=None, alias="sourceId")
    duration_sec: float | None = Field(default=None, alias="durationSec")


PAYLOAD_TYPES: dict[UsageEventType, type[BaseModel]] = {
    UsageEventType.REVIEW: ReviewPayload,
    UsageEventType.AI_GENERATE: GenerationPayload,
    UsageEventType.TRANSCRIBE: TranscribePayload,
}


def encode_payload(payload: BaseModel) -> str:
    return payload.model_dump_json(by_alias=True, exclude_none=True)


def decode_payload(event: UsageEvent) -> BaseModel | None:
    """
    Decode an event payload into its typed model.

    Returns None when the payload is not valid for the event type; payloads
    written by other clients are not trusted to follow the schema.
    """
    model = PAYLOAD_TYPES[event.type]
    try:
        return model.model_validate(json.loads(event.payload or "{}"))
    except (ValueError, ValidationError):
        return None
