from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class MessageKey(BaseModel):
    remoteJid: str
    fromMe: bool = False
    id: Optional[str] = None


class ExtendedTextMessage(BaseModel):
    text: Optional[str] = None


class MessageContent(BaseModel):
    conversation: Optional[str] = None
    extendedTextMessage: Optional[ExtendedTextMessage] = None


class WebhookData(BaseModel):
    key: MessageKey
    message: Optional[MessageContent] = None
    pushName: Optional[str] = Field(default=None, validation_alias=AliasChoices("pushName", "push_name"))

    @property
    def text(self) -> Optional[str]:
        if self.message is None:
            return None
        if self.message.conversation:
            return self.message.conversation
        if self.message.extendedTextMessage and self.message.extendedTextMessage.text:
            return self.message.extendedTextMessage.text
        return None


class WebhookRequest(BaseModel):
    """Evolution API ``messages.upsert`` payload (only the fields we read)."""

    event: Optional[str] = None
    instance: Optional[str] = None
    data: WebhookData


class WebhookResponse(BaseModel):
    status: str
    reason: Optional[str] = None
    action: Optional[str] = None
    sent: bool = False
    faq_id: Optional[str] = None
