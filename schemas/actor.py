from typing import Literal, Optional

from pydantic import BaseModel


class Actor(BaseModel):
    """Caller identity as established by the authentication layer."""

    id: str
    role: Literal["user", "admin"] = "user"
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
