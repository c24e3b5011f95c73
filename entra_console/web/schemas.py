from typing import Literal, Optional
from pydantic import BaseModel

from ..models import Permission


class PermissionIn(BaseModel):
    id: str
    type: Literal["Application", "Delegated"]
    api_id: str
    value: str = ""
    display_name: str = ""
    description: str = ""
    api: str = ""

    def to_permission(self) -> Permission:
        return Permission(
            id=self.id,
            display_name=self.display_name,
            description=self.description,
            type=self.type,
            api=self.api,
            api_id=self.api_id,
            value=self.value,
        )


class PrincipalIn(BaseModel):
    principal_id: str


class UserConsentIn(BaseModel):
    user_id: str
    permission: PermissionIn


class StatusIn(BaseModel):
    account_enabled: bool


class MessageOut(BaseModel):
    ok: bool = True
    detail: Optional[str] = None
