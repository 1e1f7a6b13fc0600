import uuid

from pydantic import BaseModel, EmailStr

from taskflow.models.enums import InvitationStatus, Role

class InviteIn(BaseModel):
    email: EmailStr
    role: Role = Role.editor

class InviteOut(BaseModel):
    invitation_id: str
    message: str

class AcceptOut(BaseModel):
    success: bool = True
    project_id: uuid.UUID

class DeclineOut(BaseModel):
    success: bool = True

class InvitationOut(BaseModel):
    id: str
    project_id: uuid.UUID
    project_name: str
    inviter_user_id: uuid.UUID
    inviter_email: str
    invitee_email: str
    invitee_user_id: uuid.UUID | None
    role: Role
    status: InvitationStatus
    created_at: str
    expires_at: str
    expired: bool
