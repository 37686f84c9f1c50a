"""
Group formation.

Students invite each other; accepting an invitation either forms a new
group of two or adds the invitee to the sender's group. Groups hold 2 to 4
students and act as a single owner for supervision, registration and
submissions.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from thesis_portal.config import get_settings
from thesis_portal.engines.seats import SeatAllocator
from thesis_portal.kernel.directory import Directory
from thesis_portal.kernel.errors import InvalidState, NotAuthorized, NotFound
from thesis_portal.kernel.events.event_store import EventStore
from thesis_portal.kernel.models.base import utcnow
from thesis_portal.kernel.models.event_log import EventType
from thesis_portal.kernel.models.group import Group, GroupMember, GroupRequest, GroupRequestStatus
from thesis_portal.kernel.models.notification import NotificationType
from thesis_portal.kernel.models.supervision import SupervisorRequest, SupervisorRequestStatus
from thesis_portal.kernel.models.user import User, UserRole
from thesis_portal.kernel.ownership import GroupRef
from thesis_portal.orchestration.notifications import Message, NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class GroupDetails:
    group: Group
    members: List[User] = field(default_factory=list)
    supervisor: Optional[User] = None


class GroupService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()
        self.directory = Directory(session)
        self.notifier = NotificationDispatcher(session)
        self.event_store = EventStore(session)

    async def _pair_request(self, from_id: uuid.UUID, to_id: uuid.UUID) -> Optional[GroupRequest]:
        result = await self.session.execute(
            select(GroupRequest).where(
                GroupRequest.from_student_id == from_id,
                GroupRequest.to_student_id == to_id,
            )
        )
        return result.scalar_one_or_none()

    async def send_request(self, sender: User, target_id: uuid.UUID) -> GroupRequest:
        """Invite another student to form or join a group."""
        if sender.role != UserRole.STUDENT:
            raise NotAuthorized("Only students can form groups")
        if sender.id == target_id:
            raise InvalidState("You cannot send a group request to yourself")
        target = await self.directory.require_user(target_id, UserRole.STUDENT, label="Student")

        if sender.supervisor_id is not None:
            raise InvalidState("You already have a supervisor")
        if target.supervisor_id is not None:
            raise InvalidState("Target student already has a supervisor")
        if await self.directory.group_for_student(target.id) is not None:
            raise InvalidState("Target student is already in a group")

        sender_group = await self.directory.group_for_student(sender.id)
        if sender_group is not None:
            size = len(await self.directory.member_ids(sender_group.id))
            if size >= self.settings.max_group_size:
                raise InvalidState(f"Group already has {self.settings.max_group_size} members")

        request = await self._pair_request(sender.id, target.id)
        if request is not None and request.status == GroupRequestStatus.PENDING:
            raise InvalidState("Group request already sent")
        if request is None:
            request = GroupRequest(from_student_id=sender.id, to_student_id=target.id)
            self.session.add(request)
        request.status = GroupRequestStatus.PENDING
        request.requested_at = utcnow()
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.GROUP_REQUESTED,
            entity_type="group_request",
            entity_id=request.id,
            user_id=sender.id,
            payload={"to_student_id": target.id},
        )
        await self.notifier.dispatch(
            target.id,
            Message(
                type=NotificationType.GROUP_REQUEST,
                title="Group Invitation",
                message=f"{sender.full_name} invited you to form a thesis group.",
                related_type="group_request",
                related_id=request.id,
            ),
            sender_id=sender.id,
        )
        return request

    async def _require_pending(self, target: User, from_student_id: uuid.UUID) -> GroupRequest:
        request = await self._pair_request(from_student_id, target.id)
        if request is None:
            raise NotFound("Group request not found")
        if request.status != GroupRequestStatus.PENDING:
            raise InvalidState("Request already processed")
        return request

    async def accept_request(self, target: User, from_student_id: uuid.UUID) -> Group:
        """
        Accept an invitation.

        The invitee joins the sender's group if there is one, otherwise a new
        group of the two is formed. Pending invitations addressed to either
        student are cleared.
        """
        request = await self._require_pending(target, from_student_id)
        sender = await self.directory.require_user(from_student_id, UserRole.STUDENT, label="Student")

        if await self.directory.group_for_student(target.id) is not None:
            raise InvalidState("You are already in a group")
        if target.supervisor_id is not None or sender.supervisor_id is not None:
            raise InvalidState("Students with a supervisor cannot form a group")

        group = await self.directory.group_for_student(sender.id)
        joining: List[uuid.UUID]
        if group is not None:
            size = len(await self.directory.member_ids(group.id))
            if size >= self.settings.max_group_size:
                raise InvalidState(f"Group already has {self.settings.max_group_size} members")
            self.session.add(GroupMember(group_id=group.id, student_id=target.id))
            joining = [target.id]
            event_type = EventType.GROUP_MEMBER_JOINED
        else:
            group = Group(name=f"Group: {sender.full_name} & {target.full_name}")
            self.session.add(group)
            await self.session.flush()
            self.session.add(GroupMember(group_id=group.id, student_id=sender.id))
            self.session.add(GroupMember(group_id=group.id, student_id=target.id))
            joining = [sender.id, target.id]
            event_type = EventType.GROUP_FORMED

        request.status = GroupRequestStatus.ACCEPTED
        await self.session.flush()

        await self.session.execute(
            delete(GroupRequest).where(
                GroupRequest.to_student_id.in_([sender.id, target.id]),
                GroupRequest.status == GroupRequestStatus.PENDING,
            )
        )
        # The group is now the owner; individual supervisor requests are void
        await self.session.execute(
            update(SupervisorRequest)
            .where(
                SupervisorRequest.student_id.in_(joining),
                SupervisorRequest.status == SupervisorRequestStatus.PENDING,
            )
            .values(status=SupervisorRequestStatus.REJECTED, responded_at=utcnow())
        )

        await self.event_store.log(
            event_type=event_type,
            entity_type="group",
            entity_id=group.id,
            user_id=target.id,
            payload={"student_ids": joining, "from_student_id": sender.id},
        )
        await self.notifier.dispatch(
            sender.id,
            Message(
                type=NotificationType.GROUP_REQUEST,
                title="Group Invitation Accepted",
                message=f"{target.full_name} accepted your group invitation.",
                related_type="group",
                related_id=group.id,
            ),
            sender_id=target.id,
        )
        return group

    async def reject_request(self, target: User, from_student_id: uuid.UUID) -> GroupRequest:
        request = await self._require_pending(target, from_student_id)
        request.status = GroupRequestStatus.REJECTED
        await self.session.flush()
        return request

    async def pending_requests(self, student: User) -> List[GroupRequest]:
        result = await self.session.execute(
            select(GroupRequest)
            .where(
                GroupRequest.to_student_id == student.id,
                GroupRequest.status == GroupRequestStatus.PENDING,
            )
            .order_by(GroupRequest.requested_at)
        )
        return list(result.scalars().all())

    async def remove_member(self, admin: User, group_id: uuid.UUID, student_id: uuid.UUID) -> Optional[Group]:
        """
        Remove a student from a group. Admin only.

        The group must keep at least two members or become empty. An emptied
        group gives up its supervision seat and is deleted; None is returned
        in that case.
        """
        if admin.role != UserRole.ADMIN:
            raise NotAuthorized("Only administrators can remove group members")
        group = await self.directory.require_group(group_id)
        student = await self.directory.require_user(student_id, UserRole.STUDENT, label="Student")

        member_ids = await self.directory.member_ids(group.id)
        if student.id not in member_ids:
            raise NotFound("Student is not a member of this group")
        remaining = len(member_ids) - 1
        if 0 < remaining < self.settings.min_group_size:
            raise InvalidState(f"Group must have at least {self.settings.min_group_size} members")

        await self.session.execute(
            delete(GroupMember).where(
                GroupMember.group_id == group.id,
                GroupMember.student_id == student.id,
            )
        )
        if group.supervisor_id is not None and student.supervisor_id == group.supervisor_id:
            student.supervisor_id = None

        await self.event_store.log(
            event_type=EventType.GROUP_MEMBER_REMOVED,
            entity_type="group",
            entity_id=group.id,
            user_id=admin.id,
            payload={"student_id": student.id, "remaining": remaining},
        )
        await self.notifier.dispatch(
            student.id,
            Message(
                type=NotificationType.GROUP_MEMBER_REMOVED,
                title="Removed From Group",
                message=f'You have been removed from "{group.name}".',
                related_type="group",
                related_id=group.id,
            ),
            sender_id=admin.id,
        )

        if remaining > 0:
            await self.session.flush()
            return group

        if group.supervisor_id is not None:
            allocator = SeatAllocator(self.session, self.directory, self.notifier)
            await allocator.release_supervision(group.supervisor_id, GroupRef(group.id), actor_id=admin.id)
        await self.event_store.log(
            event_type=EventType.GROUP_DELETED,
            entity_type="group",
            entity_id=group.id,
            user_id=admin.id,
            payload={"name": group.name},
        )
        await self.session.delete(group)
        await self.session.flush()
        logger.info("Deleted empty group %s", group.id)
        return None

    async def details(self, group: Group) -> GroupDetails:
        members = await self.directory.users_by_ids(await self.directory.member_ids(group.id))
        supervisor = (
            await self.directory.get_user(group.supervisor_id) if group.supervisor_id else None
        )
        return GroupDetails(group=group, members=members, supervisor=supervisor)

    async def details_for(self, student: User) -> GroupDetails:
        group = await self.directory.group_for_student(student.id)
        if group is None:
            raise NotFound("No group found")
        return await self.details(group)

    async def details_by_id(self, viewer: User, group_id: uuid.UUID) -> GroupDetails:
        """Group members, its supervisor and admins may view a group."""
        group = await self.directory.require_group(group_id)
        if viewer.role != UserRole.ADMIN and viewer.id != group.supervisor_id:
            if viewer.id not in await self.directory.member_ids(group.id):
                raise NotAuthorized("You cannot view this group")
        return await self.details(group)
