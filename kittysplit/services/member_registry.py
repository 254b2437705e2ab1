"""
Member identity keys.

A member is referenced from expenses and settlement records by one key:
the registered user id when there is one, otherwise the invite email,
otherwise the surrogate member_id stored when the member was created.

Accepts Member models as well as raw member-shaped dicts, in either the
stored snake_case form or the camelCase form older clients send.
"""

from typing import Any, Dict, Iterable, Mapping, Optional

_FIELDS = {
    "user_id": ("user_id", "userId"),
    "email": ("email",),
    "member_id": ("member_id", "memberId"),
    "name": ("name",),
}


def _field(member: Any, name: str) -> Optional[str]:
    for key in _FIELDS[name]:
        if isinstance(member, Mapping):
            value = member.get(key)
        else:
            value = getattr(member, key, None)
        if value:
            return str(value)
    return None


def identity_of(member: Any) -> str:
    """Return the canonical identity key for a member reference."""
    user_id = _field(member, "user_id")
    if user_id:
        return user_id
    email = _field(member, "email")
    if email:
        return email
    member_id = _field(member, "member_id")
    if member_id:
        return member_id
    # Placeholder for same-run dedup only; never persist it.
    return f"member_{_field(member, 'name') or 'unknown'}"


def same_member(a: Any, b: Any) -> bool:
    return identity_of(a) == identity_of(b)


def index_members(members: Iterable[Any]) -> Dict[str, Any]:
    """Map identity key -> member, keeping the first member for a repeated key."""
    index: Dict[str, Any] = {}
    for member in members:
        index.setdefault(identity_of(member), member)
    return index


def display_name(member: Any) -> str:
    name = _field(member, "name")
    if name:
        return name
    email = _field(member, "email")
    if email:
        return email.split("@")[0]
    return identity_of(member)
