from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

ADMIN_ROLE = "service_role"


class AuthUser(BaseModel):
    """
    Represents an authenticated user decoded from a bearer token.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_id: str = Field(..., alias="sub")
    email: Optional[str] = None
    role: str = "authenticated"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE
