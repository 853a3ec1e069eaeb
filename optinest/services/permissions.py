"""Role and ownership rules for admin mutations.

Every mutating admin route asks ``capabilities_for`` what the caller may do
with a resource and calls ``ensure_capability`` before touching the backend.
"""
from enum import Enum
from typing import FrozenSet, Optional

from optinest.core.errors import AuthorizationError
from optinest.models.admin_user import AdminRole

UNLINKED_EDITOR_MESSAGE = (
    "Your account is not linked to an author profile. Ask an admin to link it in Author CMS."
)


class Capability(str, Enum):
    CREATE_POST = "post.create"
    EDIT_POST = "post.edit"
    DELETE_POST = "post.delete"
    EDIT_AUTHOR = "author.edit"
    DELETE_AUTHOR = "author.delete"
    MANAGE_TAXONOMY = "taxonomy.manage"
    MANAGE_CMS = "cms.manage"
    MANAGE_MEDIA = "media.manage"
    MANAGE_NEWSLETTER = "newsletter.manage"
    VIEW_ANALYTICS = "analytics.read"
    MANAGE_USERS = "users.manage"


ADMIN_CAPABILITIES: FrozenSet[Capability] = frozenset(Capability)

# Shared surfaces every signed-in editor may use
EDITOR_BASE_CAPABILITIES: FrozenSet[Capability] = frozenset(
    {
        Capability.MANAGE_TAXONOMY,
        Capability.MANAGE_CMS,
        Capability.MANAGE_MEDIA,
        Capability.MANAGE_NEWSLETTER,
        Capability.VIEW_ANALYTICS,
    }
)


def capabilities_for(
    role: AdminRole,
    resource_owner_id: Optional[str] = None,
    caller_author_id: Optional[str] = None,
) -> FrozenSet[Capability]:
    """What ``role`` may do with a resource owned by ``resource_owner_id``.

    For posts the owner is the post's author id; for author profiles it is the
    linked admin user id. ``caller_author_id`` is the matching id of the caller
    (their linked author, or their own user id for author profiles).
    """
    if AdminRole(role) == AdminRole.ADMIN:
        return ADMIN_CAPABILITIES

    if not caller_author_id:
        return EDITOR_BASE_CAPABILITIES

    capabilities = set(EDITOR_BASE_CAPABILITIES)
    capabilities.add(Capability.CREATE_POST)
    # Unowned resources stay admin-only; an editor cannot claim them
    if resource_owner_id and resource_owner_id == caller_author_id:
        capabilities.update({Capability.EDIT_POST, Capability.DELETE_POST, Capability.EDIT_AUTHOR})
    return frozenset(capabilities)


def ensure_capability(capabilities: FrozenSet[Capability], capability: Capability, message: str) -> None:
    if capability not in capabilities:
        raise AuthorizationError(message)


def ensure_post_capability(
    role: AdminRole,
    capability: Capability,
    post_author_id: Optional[str],
    caller_author_id: Optional[str],
) -> None:
    """Editors without a linked author get the corrective message instead of a bare refusal."""
    if AdminRole(role) == AdminRole.EDITOR and not caller_author_id:
        raise AuthorizationError(UNLINKED_EDITOR_MESSAGE)
    verb = "delete" if capability == Capability.DELETE_POST else "edit"
    ensure_capability(
        capabilities_for(role, post_author_id, caller_author_id),
        capability,
        f"Editors can only {verb} posts from their linked author profile.",
    )
