"""
Owner references.

An owner is the party a registration, submission, supervisor request or
seat belongs to: either one student or one group, never both.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class OwnerKind(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"


@dataclass(frozen=True)
class IndividualRef:
    student_id: uuid.UUID

    kind = OwnerKind.INDIVIDUAL

    @property
    def id(self) -> uuid.UUID:
        return self.student_id

    @property
    def key(self) -> str:
        return owner_key(self.kind, self.student_id)


@dataclass(frozen=True)
class GroupRef:
    group_id: uuid.UUID

    kind = OwnerKind.GROUP

    @property
    def id(self) -> uuid.UUID:
        return self.group_id

    @property
    def key(self) -> str:
        return owner_key(self.kind, self.group_id)


OwnerRef = Union[IndividualRef, GroupRef]

# A seat on a faculty's supervisee list is held by the same kind of owner.
SuperviseeRef = OwnerRef


def owner_key(kind: Union[OwnerKind, str], owner_id: uuid.UUID) -> str:
    """Stable string key, e.g. 'group:6f1c...'. Used for uniqueness indexes."""
    kind_value = kind.value if hasattr(kind, "value") else str(kind)
    return f"{kind_value}:{owner_id}"


def make_owner(
    kind: Union[OwnerKind, str],
    student_id: Optional[uuid.UUID] = None,
    group_id: Optional[uuid.UUID] = None,
) -> OwnerRef:
    """Build an OwnerRef from persisted columns."""
    if kind == OwnerKind.GROUP:
        if group_id is None:
            raise ValueError("group owner requires group_id")
        return GroupRef(group_id)
    if student_id is None:
        raise ValueError("individual owner requires student_id")
    return IndividualRef(student_id)


def owner_columns(owner: OwnerRef) -> dict:
    """Column values for an owner, for models with owner_kind/student_id/group_id."""
    if isinstance(owner, GroupRef):
        return {"owner_kind": OwnerKind.GROUP, "student_id": None, "group_id": owner.group_id}
    return {"owner_kind": OwnerKind.INDIVIDUAL, "student_id": owner.student_id, "group_id": None}
