"""
Pydantic schemas for message endpoints.

Ciphertexts travel as base64 strings and are decoded to raw bytes before
they reach the service layer.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cipherpost.schemas.common import SnowflakeId, UtcDatetime, decode_ciphertext, encode_ciphertext
from cipherpost.services.message_service import FanoutResult, ReceivedMessage


class MessageCreate(BaseModel):
    """Schema for sending a message to a group."""

    ciphertexts: Dict[str, str] = Field(
        ...,
        min_length=1,
        description="Recipient user id -> base64 ciphertext, one per current member including yourself"
    )
    idempotency_key: Optional[str] = Field(
        None, min_length=1, max_length=255, description="Client key making retries safe"
    )

    @field_validator("ciphertexts")
    @classmethod
    def validate_ciphertexts(cls, v: Dict[str, str]) -> Dict[str, str]:
        """Keys must be canonical decimal user ids and values valid base64."""
        for user_id, content in v.items():
            # "12", "012" and non-ASCII digits would otherwise collapse to one recipient
            if not (user_id.isascii() and user_id.isdigit() and str(int(user_id)) == user_id):
                raise ValueError(f"Invalid recipient id: {user_id}")
            decode_ciphertext(content)
        return v

    def decoded_ciphertexts(self) -> Dict[int, bytes]:
        return {
            int(user_id): decode_ciphertext(content)
            for user_id, content in self.ciphertexts.items()
        }

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ciphertexts": {
                    "7231046219304961024": "q83vEjRWeJA=",
                    "7231046219304961025": "3q2+7w=="
                },
                "idempotency_key": "c5b1d1f8-2f36-4d6a-a2c5-8b0f1f3e9c11"
            }
        }
    )


class MessageSendResponse(BaseModel):
    """Result of a send: the message id and who it was fanned out to."""

    id: SnowflakeId
    group_id: SnowflakeId
    source_id: SnowflakeId
    created_at: UtcDatetime
    recipient_ids: List[SnowflakeId]
    replayed: bool = Field(False, description="True when an earlier send with the same key was returned")

    @classmethod
    def from_result(cls, result: FanoutResult) -> "MessageSendResponse":
        return cls(
            id=result.message_id,
            group_id=result.group_id,
            source_id=result.source_id,
            created_at=result.created_at,
            recipient_ids=result.recipient_ids,
            replayed=result.replayed,
        )


class MessageResponse(BaseModel):
    """A message with the requesting user's own ciphertext."""

    id: SnowflakeId
    group_id: SnowflakeId
    source_id: SnowflakeId
    created_at: UtcDatetime
    content: str = Field(..., description="Base64 ciphertext addressed to you")

    @classmethod
    def from_received(cls, message: ReceivedMessage) -> "MessageResponse":
        return cls(
            id=message.message_id,
            group_id=message.group_id,
            source_id=message.source_id,
            created_at=message.created_at,
            content=encode_ciphertext(message.content),
        )


class MessageListResponse(BaseModel):
    """Cursor-paginated messages, newest first."""

    data: List[MessageResponse]
    next_before: Optional[SnowflakeId] = Field(None, description="Cursor for the next (older) page")
    has_more: bool = False
