import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskflow.auth.deps import get_current_user
from taskflow.auth.tokens import as_utc
from taskflow.config import settings
from taskflow.db import get_db
from taskflow.models.invitation import Invitation
from taskflow.models.user import User
from taskflow.ratelimit import rate_limit
from taskflow.schemas.invitations import AcceptOut, DeclineOut, InvitationOut, InviteIn, InviteOut
from taskflow.services import invitations as service

router = APIRouter(tags=["invitations"])

def invitation_out(inv: Invitation) -> InvitationOut:
    return InvitationOut(
        id=inv.id,
        project_id=inv.project_id,
        project_name=inv.project_name,
        inviter_user_id=inv.inviter_user_id,
        inviter_email=inv.inviter_email,
        invitee_email=inv.invitee_email,
        invitee_user_id=inv.invitee_user_id,
        role=inv.role,
        status=inv.status,
        created_at=as_utc(inv.created_at).isoformat(),
        expires_at=as_utc(inv.expires_at).isoformat(),
        expired=service.is_expired(inv),
    )

@router.post("/projects/{project_id}/invitations", response_model=InviteOut)
def invite_user(
    project_id: uuid.UUID,
    payload: InviteIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    _: None = Depends(
        rate_limit(
            "invitations:create",
            limit_per_window=settings.rate_limit_invites_per_min,
            window_seconds=60,
            per_caller=True,
        )
    ),
) -> InviteOut:
    inv = service.invite_user(db, project_id, user, payload.email, payload.role)
    return InviteOut(invitation_id=inv.id, message=f"Invitation sent to {inv.invitee_email}")

@router.get("/invitations", response_model=list[InvitationOut])
def my_invitations(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[InvitationOut]:
    return [invitation_out(inv) for inv in service.list_my_invitations(db, user)]

@router.post("/invitations/{invitation_id}/accept", response_model=AcceptOut)
def accept_invitation(
    invitation_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AcceptOut:
    inv = service.accept_invitation(db, invitation_id, user)
    return AcceptOut(project_id=inv.project_id)

@router.post("/invitations/{invitation_id}/decline", response_model=DeclineOut)
def decline_invitation(
    invitation_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DeclineOut:
    service.decline_invitation(db, invitation_id, user)
    return DeclineOut()
