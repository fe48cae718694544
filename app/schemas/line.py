from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class LineSource(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    userId: Optional[str] = None


class LineMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: str
    text: Optional[str] = None


class LinePostback(BaseModel):
    model_config = ConfigDict(extra="allow")

    data: str = ""
    params: Optional[dict[str, Any]] = None


class LineEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    replyToken: Optional[str] = None
    timestamp: Optional[int] = None
    source: Optional[LineSource] = None
    message: Optional[LineMessage] = None
    postback: Optional[LinePostback] = None

    @property
    def user_id(self) -> str:
        if self.source and self.source.userId:
            return self.source.userId
        return "unknown"


class LineWebhookRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    destination: Optional[str] = None
    events: list[LineEvent]


class LineWebhookResponse(BaseModel):
    success: bool
    message: Optional[str] = None
