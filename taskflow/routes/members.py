import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from taskflow.auth.deps import get_current_user
from taskflow.db import get_db
from taskflow.models.user import User
from taskflow.schemas.members import MemberLookupIn, MemberOut, MembershipChangeOut, RoleChangeIn
from taskflow.services import membership as service

router = APIRouter(prefix="/projects/{project_id}/members", tags=["members"])

@router.post("/lookup", response_model=list[MemberOut])
def lookup_members(
    project_id: uuid.UUID,
    payload: MemberLookupIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[MemberOut]:
    rows = service.get_project_members(db, project_id, user, payload.member_ids)
    return [MemberOut(uid=m.uid, email=m.email, display_name=m.display_name) for m in rows]

@router.patch("/{user_id}", response_model=MembershipChangeOut)
def change_role(
    project_id: uuid.UUID,
    user_id: str,
    payload: RoleChangeIn,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MembershipChangeOut:
    change = service.change_user_role(db, project_id, user, user_id, payload.new_role)
    if not change.changed:
        return MembershipChangeOut(message=f"User already has role {change.new_role.value}")
    return MembershipChangeOut(
        message=f"Role changed from {change.old_role.value} to {change.new_role.value}"
    )

@router.delete("/{user_id}", response_model=MembershipChangeOut)
def remove_member(
    project_id: uuid.UUID,
    user_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MembershipChangeOut:
    service.remove_member(db, project_id, user, user_id)
    return MembershipChangeOut(message="Member removed from project")
