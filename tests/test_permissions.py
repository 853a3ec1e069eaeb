import pytest

from optinest.core.errors import AuthorizationError
from optinest.models.admin_user import AdminRole
from optinest.services.permissions import (
    ADMIN_CAPABILITIES,
    EDITOR_BASE_CAPABILITIES,
    UNLINKED_EDITOR_MESSAGE,
    Capability,
    capabilities_for,
    ensure_post_capability,
)


def test_admin_can_do_everything():
    assert capabilities_for(AdminRole.ADMIN, "someone-else", None) == ADMIN_CAPABILITIES


def test_unlinked_editor_only_gets_shared_surfaces():
    capabilities = capabilities_for(AdminRole.EDITOR, None, None)
    assert capabilities == EDITOR_BASE_CAPABILITIES
    assert Capability.CREATE_POST not in capabilities
    assert Capability.MANAGE_USERS not in capabilities


def test_editor_owns_their_resources():
    own = capabilities_for(AdminRole.EDITOR, "me", "me")
    assert {Capability.CREATE_POST, Capability.EDIT_POST, Capability.DELETE_POST} <= own

    other = capabilities_for(AdminRole.EDITOR, "someone-else", "me")
    assert Capability.CREATE_POST in other
    assert Capability.EDIT_POST not in other
    assert Capability.DELETE_AUTHOR not in other


def test_unowned_resources_are_admin_only():
    unowned = capabilities_for(AdminRole.EDITOR, None, "me")
    assert Capability.CREATE_POST in unowned
    assert Capability.EDIT_AUTHOR not in unowned
    assert Capability.EDIT_POST not in unowned
    assert Capability.DELETE_POST not in unowned
    assert Capability.EDIT_AUTHOR in capabilities_for(AdminRole.ADMIN, None, None)


def test_unlinked_editor_gets_corrective_message():
    with pytest.raises(AuthorizationError, match=UNLINKED_EDITOR_MESSAGE):
        ensure_post_capability(AdminRole.EDITOR, Capability.CREATE_POST, None, None)


def test_editor_cannot_delete_foreign_posts():
    with pytest.raises(AuthorizationError, match="only delete posts"):
        ensure_post_capability(AdminRole.EDITOR, Capability.DELETE_POST, "someone-else", "me")
    ensure_post_capability(AdminRole.EDITOR, Capability.DELETE_POST, "me", "me")
    ensure_post_capability(AdminRole.ADMIN, Capability.DELETE_POST, "someone-else", None)
