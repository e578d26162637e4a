from datetime import datetime

from pydantic import BaseModel

from stockdesk.app.db.models.core_types import Role


class UserRead(BaseModel):
    id: int
    username: str
    role: Role
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
