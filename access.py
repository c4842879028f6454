"""
Workspace access control.

A caller may operate on a workspace when they own it or when their email
appears in its membership list. Ownership is checked on its own; the owner
does not need a membership entry.
"""
from enum import Enum
from typing import FrozenSet, Optional

from errors import BadRequest, Forbidden
from schemas import Actor, Workspace


class Access(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


def normalize_email(email: Optional[str]) -> Optional[str]:
    if not email or not email.strip():
        return None
    return email.strip().lower()


def member_emails(workspace: Workspace) -> FrozenSet[str]:
    return frozenset(normalize_email(m.user_email) for m in workspace.members)


def is_owner(actor: Actor, workspace: Workspace) -> bool:
    return workspace.owner_id is not None and actor.id == workspace.owner_id


def authorize(actor: Actor, workspace: Workspace) -> Access:
    if is_owner(actor, workspace):
        return Access.ALLOWED
    email = normalize_email(actor.email)
    if email is not None and email in member_emails(workspace):
        return Access.ALLOWED
    return Access.DENIED


def require_member(actor: Actor, workspace: Workspace) -> Workspace:
    """Return the workspace if the actor may use it, raise Forbidden otherwise."""
    if authorize(actor, workspace) is Access.DENIED:
        raise Forbidden("Not a member of this workspace")
    return workspace


def require_workspace_id(workspace_id: Optional[str]) -> str:
    if workspace_id is None or not str(workspace_id).strip():
        raise BadRequest("workspace_id is required")
    return str(workspace_id).strip()
