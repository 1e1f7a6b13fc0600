from pydantic import BaseModel

from taskflow.models.enums import Role

class MemberLookupIn(BaseModel):
    member_ids: list[str]

class MemberOut(BaseModel):
    uid: str
    email: str
    display_name: str | None

class RoleChangeIn(BaseModel):
    new_role: Role

class MembershipChangeOut(BaseModel):
    success: bool = True
    message: str
