"""Entity roles and their registry."""

from __future__ import annotations

import json
from typing import Any, Iterable


class Role(int):
    """An entity role, identified by an integer."""

    def __str__(self) -> str:
        name = _ROLE_TO_NAME.get(int(self))
        if name is not None:
            return name
        return f"Role({int(self)})"

    def __repr__(self) -> str:
        return f"Role({int(self)})"


MANIFEST_CREATOR = Role(1)

_ROLE_TO_NAME: dict[int, str] = {1: "manifestCreator"}
_NAME_TO_ROLE: dict[str, Role] = {"manifestCreator": MANIFEST_CREATOR}


def register_role(value: int, name: str) -> Role:
    """Register a new role; raise ValueError if value or name clash."""
    value = int(value)
    if value in _ROLE_TO_NAME:
        raise ValueError(f"role with value {value} already exists")
    if name in _NAME_TO_ROLE:
        raise ValueError(f'role with name "{name}" already exists')
    role = Role(value)
    _ROLE_TO_NAME[value] = name
    _NAME_TO_ROLE[name] = role
    return role


def _is_role(value: int) -> bool:
    return int(value) in _ROLE_TO_NAME


class Roles(list):
    """A list of Role values."""

    def __init__(self, roles: Iterable[int] = ()) -> None:
        super().__init__(Role(r) for r in roles)

    def add(self, *args: int) -> "Roles":
        """Append the given roles; raise ValueError if any is unknown."""
        roles = []
        for r in args:
            if not _is_role(r):
                raise ValueError(f"unknown role {int(r)}")
            roles.append(Role(r))
        self.extend(roles)
        return self

    def valid(self) -> None:
        if not self:
            raise ValueError("empty roles")
        for index, r in enumerate(self):
            if not _is_role(r):
                raise ValueError(f"unknown role {int(r)} at index {index}")

    def to_json_value(self) -> list[str]:
        names = []
        for r in self:
            name = _ROLE_TO_NAME.get(int(r))
            if name is None:
                raise ValueError(f"unknown role {int(r)}")
            names.append(name)
        return names

    @classmethod
    def from_json_value(cls, value: Any) -> "Roles":
        if not isinstance(value, list) or not all(isinstance(s, str) for s in value):
            raise ValueError("expecting a JSON array of role names")
        roles = cls()
        for name in value:
            role = _NAME_TO_ROLE.get(name)
            if role is None:
                raise ValueError(f'unknown role "{name}"')
            roles.append(role)
        return roles

    def to_json(self) -> str:
        try:
            self.valid()
        except ValueError as exc:
            raise ValueError(f"validation failed: {exc}") from exc
        try:
            value = self.to_json_value()
        except ValueError as exc:
            raise ValueError(f"encoding failed: {exc}") from exc
        return json.dumps(value, separators=(",", ":"))

    @classmethod
    def from_json(cls, data: str | bytes) -> "Roles":
        try:
            roles = cls.from_json_value(json.loads(data))
        except ValueError as exc:
            raise ValueError(f"decoding failed: {exc}") from exc
        try:
            roles.valid()
        except ValueError as exc:
            raise ValueError(f"validation failed: {exc}") from exc
        return roles