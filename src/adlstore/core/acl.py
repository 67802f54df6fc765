"""ACL entries in their POSIX string form, e.g. ``default:user:bob:rw-``."""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from .model import ArgumentError


class AclScope(str, Enum):
    ACCESS = "access"
    DEFAULT = "default"


class AclType(str, Enum):
    USER = "user"
    GROUP = "group"
    OTHER = "other"
    MASK = "mask"


class AclAction(str, Enum):
    # declaration order matches the octal value
    NONE = "---"
    EXECUTE = "--x"
    WRITE = "-w-"
    WRITE_EXECUTE = "-wx"
    READ = "r--"
    READ_EXECUTE = "r-x"
    READ_WRITE = "rw-"
    ALL = "rwx"

    @classmethod
    def from_rwx(cls, rwx: str) -> AclAction:
        try:
            return cls(rwx.strip().lower())
        except ValueError:
            raise ArgumentError(f"{rwx!r} is not a valid access specifier") from None

    @classmethod
    def from_octal(cls, perm: int) -> AclAction:
        if not 0 <= perm <= 7:
            raise ArgumentError(f"{perm} is not a valid access specifier")
        return list(cls)[perm]

    def to_octal(self) -> int:
        return list(type(self)).index(self)


def is_valid_rwx(rwx: str) -> bool:
    try:
        AclAction.from_rwx(rwx)
    except ArgumentError:
        return False
    return True


@dataclass(slots=True)
class AclEntry:
    scope: AclScope
    type: AclType
    name: str = ""
    action: Optional[AclAction] = None

    def __post_init__(self):
        if self.type in (AclType.MASK, AclType.OTHER) and self.name.strip():
            raise ArgumentError(f"ACL entry of type '{self.type.value}' cannot have a user/group name")

    @classmethod
    def parse(cls, text: str, remove: bool = False) -> AclEntry:
        """Parse one entry. With `remove`, the permission part may be omitted."""
        spec = text.strip()
        scope = AclScope.ACCESS
        head, sep, rest = spec.partition(":")
        if sep and head.strip().lower() == "default":
            scope = AclScope.DEFAULT
            spec = rest

        parts = spec.split(":")
        if len(parts) not in (2, 3) or (len(parts) == 2 and not remove):
            raise ArgumentError(f"invalid ACL entry {text!r}")
        try:
            acl_type = AclType(parts[0].strip().lower())
        except ValueError:
            raise ArgumentError(f"invalid ACL type in {text!r}") from None

        action = None
        if not remove:
            action = AclAction.from_rwx(parts[2])
        return cls(scope, acl_type, parts[1].strip(), action)

    def to_string(self, remove: bool = False) -> str:
        prefix = "default:" if self.scope is AclScope.DEFAULT else ""
        text = f"{prefix}{self.type.value}:{self.name}"
        if self.action is not None and not remove:
            text += f":{self.action.value}"
        return text

    def __str__(self) -> str:
        return self.to_string()


def parse_acl_spec(spec: Optional[str]) -> List[AclEntry]:
    """Parse a comma separated list of entries; blank input gives an empty list."""
    if not spec or not spec.strip():
        return []
    return [AclEntry.parse(item) for item in spec.split(",") if item.strip()]


def acl_spec_to_string(entries: Iterable[AclEntry], remove: bool = False) -> str:
    return ",".join(entry.to_string(remove) for entry in entries)
