# /ledgerbot/models/events.py

from typing import Optional
from pydantic import BaseModel, Field, model_validator


class AttachmentKinds:
    """Attachment kinds the transport adapter can deliver."""
    PDF = "pdf"
    IMAGE = "image"
    DOCUMENT = "document"

    ALL = (PDF, IMAGE, DOCUMENT)


class InboundEvent(BaseModel):
    """One inbound message for a user, as delivered by the transport adapter."""
    user_key: str = Field(..., min_length=1, description="Stable identifier of the conversation participant")
    text: str = Field(default="", description="Message text or document caption")
    has_attachment: bool = Field(default=False, description="Whether a document is attached")
    attachment_kind: Optional[str] = Field(default=None, description="pdf, image or document")
    attachment_payload: Optional[str] = Field(default=None, description="Extracted document text or base64 image data")
    attachment_mime_type: Optional[str] = Field(default=None, description="MIME type of image attachments")

    @model_validator(mode="after")
    def normalise_attachment(self):
        if self.attachment_kind is not None:
            kind = self.attachment_kind.lower()
            if kind not in AttachmentKinds.ALL:
                raise ValueError(f"Unsupported attachment kind: {self.attachment_kind}")
            self.attachment_kind = kind
            self.has_attachment = True
        elif self.attachment_payload and not self.has_attachment:
            self.has_attachment = True
        if self.has_attachment and self.attachment_kind is None:
            self.attachment_kind = AttachmentKinds.DOCUMENT
        return self

    @property
    def clean_text(self) -> str:
        return self.text.strip()


class ReplyEnvelope(BaseModel):
    """Response returned to the transport adapter; reply is None when nothing should be sent."""
    user_key: str
    reply: Optional[str] = None
