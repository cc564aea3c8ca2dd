from typing import Optional

from pydantic import BaseModel, EmailStr


class SessionUser(BaseModel):
    """The signed-in student, as handed to us by the auth layer."""

    id: str
    email: EmailStr
    display_name: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or self.email or "Anonymous"
