from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import NamedTuple


WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class Role(str, enum.Enum):
    STUDENT = "student"
    FACULTY = "faculty"
    UNKNOWN = "unknown"
    # Session exists but the role has not been looked up yet.
    PENDING = "pending"

    @classmethod
    def accepted(cls, value) -> "Role | None":
        """Map the two role literals a store or metadata bag may carry; anything else is None."""
        if value == cls.FACULTY.value:
            return cls.FACULTY
        if value == cls.STUDENT.value:
            return cls.STUDENT
        return None


@dataclass(frozen=True)
class Principal:
    id: str
    display_name: str
    role: Role = Role.UNKNOWN

    @property
    def is_faculty(self) -> bool:
        return self.role is Role.FACULTY

    def owns(self, row: dict, owner_column: str) -> bool:
        return str(row.get(owner_column) or "") == self.id


class ClassTime(NamedTuple):
    hour: int
    minute: int

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"
