"""
Identity & Capacity Store access.

Reads users, groups and registrations, resolves a student to the owner that
governs them (group membership always wins), and writes the supervisor link
for an owner.
"""

import uuid
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from thesis_portal.kernel.errors import NotFound
from thesis_portal.kernel.models.group import Group, GroupMember
from thesis_portal.kernel.models.registration import ThesisRegistration, RegistrationStatus
from thesis_portal.kernel.models.user import User, UserRole
from thesis_portal.kernel.ownership import GroupRef, IndividualRef, OwnerRef


class Directory:
    """Queries and updates over users, groups and registrations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # Users

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def require_user(
        self,
        user_id: uuid.UUID,
        role: Optional[UserRole] = None,
        label: str = "User",
    ) -> User:
        """Load a user, raising NotFound if missing or not in the given role."""
        user = await self.get_user(user_id)
        if not user or (role is not None and user.role != role):
            raise NotFound(f"{label} not found")
        return user

    async def lock_user(self, user_id: uuid.UUID) -> Optional[User]:
        """
        Load a user with a row lock held until the transaction ends.

        Used to serialize seat accounting per faculty. SQLite ignores
        FOR UPDATE and serializes writers on its own.
        """
        result = await self.session.execute(
            select(User).where(User.id == user_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def users_by_ids(self, user_ids: List[uuid.UUID]) -> List[User]:
        if not user_ids:
            return []
        result = await self.session.execute(select(User).where(User.id.in_(user_ids)))
        return list(result.scalars().all())

    async def admins(self) -> List[User]:
        result = await self.session.execute(
            select(User).where(User.role == UserRole.ADMIN, User.is_active.is_(True))
        )
        return list(result.scalars().all())

    # Groups

    async def get_group(self, group_id: uuid.UUID) -> Optional[Group]:
        result = await self.session.execute(select(Group).where(Group.id == group_id))
        return result.scalar_one_or_none()

    async def require_group(self, group_id: uuid.UUID) -> Group:
        group = await self.get_group(group_id)
        if not group:
            raise NotFound("Group not found")
        return group

    async def group_for_student(self, student_id: uuid.UUID) -> Optional[Group]:
        result = await self.session.execute(
            select(Group)
            .join(GroupMember, GroupMember.group_id == Group.id)
            .where(GroupMember.student_id == student_id)
        )
        return result.scalar_one_or_none()

    async def member_ids(self, group_id: uuid.UUID) -> List[uuid.UUID]:
        result = await self.session.execute(
            select(GroupMember.student_id)
            .where(GroupMember.group_id == group_id)
            .order_by(GroupMember.joined_at)
        )
        return list(result.scalars().all())

    async def memberships(self, group_id: uuid.UUID) -> List[GroupMember]:
        result = await self.session.execute(
            select(GroupMember)
            .where(GroupMember.group_id == group_id)
            .order_by(GroupMember.joined_at)
        )
        return list(result.scalars().all())

    # Owners

    async def resolve_owner(self, student: User) -> OwnerRef:
        """The owner whose state governs this student: their group if any, else themselves."""
        group = await self.group_for_student(student.id)
        if group:
            return GroupRef(group.id)
        return IndividualRef(student.id)

    async def owner_supervisor_id(self, owner: OwnerRef) -> Optional[uuid.UUID]:
        if isinstance(owner, GroupRef):
            group = await self.get_group(owner.group_id)
            return group.supervisor_id if group else None
        user = await self.get_user(owner.student_id)
        return user.supervisor_id if user else None

    async def owner_exists(self, owner: OwnerRef) -> bool:
        if isinstance(owner, GroupRef):
            return await self.get_group(owner.group_id) is not None
        student = await self.get_user(owner.student_id)
        return student is not None and student.role == UserRole.STUDENT

    async def owner_student_ids(self, owner: OwnerRef) -> List[uuid.UUID]:
        """Students represented by an owner: the student, or every group member."""
        if isinstance(owner, GroupRef):
            return await self.member_ids(owner.group_id)
        return [owner.student_id]

    async def owner_label(self, owner: OwnerRef) -> str:
        if isinstance(owner, GroupRef):
            group = await self.get_group(owner.group_id)
            return f'Group "{group.name}"' if group else "Group"
        user = await self.get_user(owner.student_id)
        return user.full_name if user else "Student"

    async def set_owner_supervisor(
        self,
        owner: OwnerRef,
        faculty_id: Optional[uuid.UUID],
    ) -> List[uuid.UUID]:
        """
        Write the supervisor link for an owner.

        For a group the link is written on the group and on every current
        member. Returns the affected student ids.
        """
        student_ids = await self.owner_student_ids(owner)
        if isinstance(owner, GroupRef):
            await self.session.execute(
                update(Group).where(Group.id == owner.group_id).values(supervisor_id=faculty_id)
            )
        if student_ids:
            await self.session.execute(
                update(User)
                .where(User.id.in_(student_ids))
                .values(supervisor_id=faculty_id)
                .execution_options(synchronize_session="fetch")
            )
        self._sync_loaded(owner, student_ids, faculty_id)
        return student_ids

    def _sync_loaded(
        self,
        owner: OwnerRef,
        student_ids: List[uuid.UUID],
        faculty_id: Optional[uuid.UUID],
    ) -> None:
        """Copy the new link onto users and groups already held by this session."""
        affected = set(student_ids)
        for obj in list(self.session.identity_map.values()):
            if isinstance(obj, User) and obj.id in affected:
                set_committed_value(obj, "supervisor_id", faculty_id)
            elif isinstance(obj, Group) and isinstance(owner, GroupRef) and obj.id == owner.group_id:
                set_committed_value(obj, "supervisor_id", faculty_id)

    # Registrations

    async def get_registration(self, owner: OwnerRef) -> Optional[ThesisRegistration]:
        if isinstance(owner, GroupRef):
            condition = ThesisRegistration.group_id == owner.group_id
        else:
            condition = ThesisRegistration.student_id == owner.student_id
        result = await self.session.execute(select(ThesisRegistration).where(condition))
        return result.scalar_one_or_none()

    async def registration_approved(self, owner: OwnerRef) -> bool:
        """
        Whether the owner's registration is approved.

        For a group, an approved registration held by any current member
        also counts.
        """
        registration = await self.get_registration(owner)
        if registration and registration.status == RegistrationStatus.APPROVED:
            return True
        if not isinstance(owner, GroupRef):
            return False
        member_ids = await self.member_ids(owner.group_id)
        if not member_ids:
            return False
        result = await self.session.execute(
            select(ThesisRegistration.id).where(
                ThesisRegistration.student_id.in_(member_ids),
                ThesisRegistration.status == RegistrationStatus.APPROVED,
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None
