from datetime import datetime

from pydantic import BaseModel, ConfigDict


class NotificationRead(BaseModel):
    id: int
    type: str
    message: str
    related_quiz_id: int | None = None
    related_attempt_id: int | None = None
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
