"""Member management schemas for kitties."""
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class MemberAdd(BaseModel):
    """Invite a member by email."""
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=100)
