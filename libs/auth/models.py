from pydantic import BaseModel, ConfigDict, Field


class AuthUser(BaseModel):
    """
    Represents an authenticated caller, decoded from an access token.
    """

    user_id: str = Field(..., alias="sub")
    email: str | None = None
    role: str = "member"

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
