"""Inbound update events delivered by the updates exchange."""

import json
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


MESSAGE_CREATE = "message.create"
MESSAGE_UPDATE = "message.update"
MESSAGE_STATUS_UPDATE = "message.status.update"
MESSAGE_REACTION_UPDATE = "message.reaction.update"


class MalformedUpdateError(ValueError):
    """Raised when a queue payload is not a valid update."""
    pass


class MessagePayload(BaseModel):
    """Message part of an update."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    message_id: Optional[str] = Field(default=None, alias="messageId")
    dialog_id: Optional[str] = Field(default=None, alias="dialogId")
    sender_id: Optional[str] = Field(default=None, alias="senderId")
    content: str = ""
    created_at: Optional[Union[str, int, float]] = Field(default=None, alias="createdAt")
    type: Optional[str] = None
    status_update: Optional[dict] = Field(default=None, alias="statusUpdate")
    reaction_update: Optional[dict] = Field(default=None, alias="reactionUpdate")

    @field_validator("content", mode="before")
    @classmethod
    def _content_not_null(cls, value: Any) -> Any:
        return "" if value is None else value


class UpdateData(BaseModel):
    """Entity payloads of an update."""

    model_config = ConfigDict(extra="allow")

    message: Optional[MessagePayload] = None
    dialog: Optional[dict] = None
    member: Optional[dict] = None
    user: Optional[dict] = None
    typing: Optional[dict] = None


class UpdateEvent(BaseModel):
    """One update from the platform."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    event_type: str = Field(..., alias="eventType", min_length=1)
    data: UpdateData = Field(default_factory=UpdateData)

    @classmethod
    def parse(cls, payload: Union[bytes, str, dict[str, Any]]) -> "UpdateEvent":
        """
        Parse a raw queue body or decoded dict.

        Raises:
            MalformedUpdateError: If the payload is not JSON or not an update
        """
        if isinstance(payload, (bytes, str)):
            try:
                payload = json.loads(payload)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise MalformedUpdateError(f"Update is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise MalformedUpdateError("Update must be a JSON object")

        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise MalformedUpdateError(f"Invalid update: {e}") from e
