"""
Group endpoints:
  POST   /groups                          — create a group (creator joins)
  GET    /groups                          — groups the caller belongs to
  GET    /groups/invites                  — caller's pending invites
  POST   /groups/invites/{id}/respond     — accept / decline an invite
  GET    /groups/{id}                     — group details (members only)
  POST   /groups/{id}/invite              — invite a user by email
  DELETE /groups/{id}/members/{member_id} — leave, or creator removes a member

Inviting notifies the invitee; answering notifies the inviter.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from opentelemetry import trace
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from luna.database import get_db
from luna.models import Group, GroupInvite, GroupMember, Notification, User, utcnow
from luna.schemas import (
    GroupCreate,
    GroupResponse,
    InviteCreatedResponse,
    InviteRequest,
    InviteRespondRequest,
    InviteResponse,
    MessageResponse,
    UserSummary,
)
from luna.security import get_current_user_id

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def build_group_response(group: Group) -> GroupResponse:
    return GroupResponse(
        group_id=group.group_id,
        name=group.name,
        description=group.description,
        created_by=UserSummary.model_validate(group.creator),
        members=[UserSummary.model_validate(m.user) for m in group.members],
        created_at=group.created_at,
        updated_at=group.updated_at,
    )


async def _load_group(db: AsyncSession, group_id: str) -> Group | None:
    row = await db.execute(
        select(Group)
        .where(Group.group_id == group_id)
        .execution_options(populate_existing=True)
    )
    return row.scalars().unique().one_or_none()


async def _load_invite(db: AsyncSession, invite_id: str) -> GroupInvite | None:
    row = await db.execute(
        select(GroupInvite)
        .where(GroupInvite.invite_id == invite_id)
        .execution_options(populate_existing=True)
    )
    return row.scalars().unique().one_or_none()


@router.post("/", response_model=GroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(
    body: GroupCreate,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("create_group"):
        existing = await db.execute(
            select(Group.group_id).where(func.lower(Group.name) == body.name.lower())
        )
        if existing.first():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Group with this name already exists",
            )

        group = Group(
            name=body.name,
            description=body.description,
            created_by=current_user_id,
            members=[GroupMember(user_id=current_user_id)],
        )
        db.add(group)
        await db.flush()

        logger.info("Group %s (%s) created by %s", group.group_id, group.name, current_user_id)
        return build_group_response(await _load_group(db, group.group_id))


@router.get("/", response_model=list[GroupResponse])
async def list_my_groups(
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(Group)
        .join(GroupMember, GroupMember.group_id == Group.group_id)
        .where(GroupMember.user_id == current_user_id)
        .order_by(Group.updated_at.desc())
    )
    return [build_group_response(g) for g in rows.scalars().unique().all()]


@router.get("/invites", response_model=list[InviteResponse])
async def list_my_invites(
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    rows = await db.execute(
        select(GroupInvite)
        .where(GroupInvite.invitee_id == current_user_id, GroupInvite.status == "pending")
        .order_by(GroupInvite.created_at.desc())
    )
    return rows.scalars().unique().all()


@router.post("/invites/{invite_id}/respond", response_model=MessageResponse)
async def respond_to_invite(
    invite_id: str,
    body: InviteRespondRequest,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("respond_to_invite"):
        invite = await _load_invite(db, invite_id)
        if not invite or invite.invitee_id != current_user_id:
            raise HTTPException(status_code=404, detail="Invite not found")
        if invite.status != "pending":
            raise HTTPException(status_code=400, detail="Invite already processed")

        if body.action == "accept":
            group = await _load_group(db, invite.group_id)
            if not group.has_member(current_user_id):
                group.members.append(GroupMember(user_id=current_user_id))
                group.updated_at = utcnow()
            invite.status = "accepted"
        else:
            invite.status = "declined"

        db.add(
            Notification(
                type="group_invite_response",
                actor_id=current_user_id,
                recipient_id=invite.inviter_id,
                group_id=invite.group_id,
                invite_id=invite.invite_id,
                action=body.action,
            )
        )

        logger.info("Invite %s %s by %s", invite_id, invite.status, current_user_id)
        return MessageResponse(message=f"Invite {invite.status} successfully")


@router.get("/{group_id}", response_model=GroupResponse)
async def get_group(
    group_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    group = await _load_group(db, group_id)
    if not group or not group.has_member(current_user_id):
        raise HTTPException(status_code=404, detail="Group not found or access denied")
    return build_group_response(group)


@router.post(
    "/{group_id}/invite",
    response_model=InviteCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def invite_member(
    group_id: str,
    body: InviteRequest,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    with tracer.start_as_current_span("invite_member"):
        group = await _load_group(db, group_id)
        if not group or not group.has_member(current_user_id):
            raise HTTPException(
                status_code=403, detail="You must be a group member to invite others"
            )

        row = await db.execute(select(User).where(User.email == body.email.lower()))
        invitee = row.scalar_one_or_none()
        if not invitee:
            raise HTTPException(status_code=404, detail="User not found")

        if group.has_member(invitee.user_id):
            raise HTTPException(status_code=400, detail="User is already a member of this group")

        pending = await db.execute(
            select(GroupInvite.invite_id).where(
                GroupInvite.group_id == group_id,
                GroupInvite.invitee_id == invitee.user_id,
                GroupInvite.status == "pending",
            )
        )
        if pending.first():
            raise HTTPException(
                status_code=400, detail="An invite has already been sent to this user"
            )

        invite = GroupInvite(
            group_id=group_id, inviter_id=current_user_id, invitee_id=invitee.user_id
        )
        db.add(invite)
        await db.flush()

        notification = Notification(
            type="group_invite",
            actor_id=current_user_id,
            recipient_id=invitee.user_id,
            group_id=group_id,
            invite_id=invite.invite_id,
        )
        db.add(notification)
        await db.flush()

        logger.info(
            "%s invited %s to group %s", current_user_id, invitee.user_id, group_id
        )
        return InviteCreatedResponse(
            invite=InviteResponse.model_validate(await _load_invite(db, invite.invite_id)),
            notification_id=notification.notification_id,
        )


@router.delete("/{group_id}/members/{member_id}", response_model=MessageResponse)
async def remove_member(
    group_id: str,
    member_id: str,
    current_user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    group = await _load_group(db, group_id)
    if not group or not group.has_member(current_user_id):
        raise HTTPException(status_code=403, detail="Access denied")

    removing_self = member_id == current_user_id
    is_owner = group.created_by == current_user_id
    if not removing_self and not is_owner:
        raise HTTPException(
            status_code=403, detail="Only the group creator can remove other members"
        )
    if not group.has_member(member_id):
        raise HTTPException(status_code=404, detail="Member not found")

    group.members = [m for m in group.members if m.user_id != member_id]
    group.updated_at = utcnow()

    logger.info("User %s removed from group %s by %s", member_id, group_id, current_user_id)
    return MessageResponse(message="Member removed successfully")
