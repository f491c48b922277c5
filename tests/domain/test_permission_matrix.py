"""
Role authority tests.

Verifies:
- The default matrix grants exactly the documented permissions
- Absent pairs and a missing role are denied
- A custom matrix replaces the default wholesale
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from compliance_kernel.domain.access import Action, ResourceKind, Role
from compliance_kernel.domain.permissions import DEFAULT_PERMISSION_MATRIX, build_matrix
from compliance_kernel.services.role_authority import RoleAuthority

R, C, U = Action.READ, Action.CREATE, Action.UPDATE
SI = ResourceKind.SITE_INSPECTION
CT = ResourceKind.COMPLIANCE_TEMPLATE
AL = ResourceKind.AUDIT_LOG

EXPECTED = {
    Role.DIRECTOR: {(SI, R), (SI, C), (SI, U), (CT, R), (AL, R)},
    Role.PROJECT_MANAGER: {(SI, R), (SI, C), (SI, U), (CT, R), (AL, R)},
    Role.CLIENT: {(SI, R), (CT, R)},
    Role.TECHNICIAN: {(SI, R), (SI, C), (CT, R)},
}


class TestDefaultMatrix:
    @pytest.mark.parametrize("role", list(Role))
    @pytest.mark.parametrize("kind", list(ResourceKind))
    @pytest.mark.parametrize("action", list(Action))
    def test_full_table(self, role, kind, action):
        authority = RoleAuthority()
        assert authority.authorize(role, action, kind) == ((kind, action) in EXPECTED[role])

    def test_technician_may_create_but_not_update(self):
        authority = RoleAuthority()
        assert authority.authorize(Role.TECHNICIAN, Action.CREATE, SI)
        assert not authority.authorize(Role.TECHNICIAN, Action.UPDATE, SI)

    def test_client_cannot_read_audit_log(self):
        assert not RoleAuthority().authorize(Role.CLIENT, Action.READ, AL)

    def test_director_and_project_manager_match(self):
        assert (
            DEFAULT_PERMISSION_MATRIX[Role.DIRECTOR]
            == DEFAULT_PERMISSION_MATRIX[Role.PROJECT_MANAGER]
        )

    def test_permissions_for(self):
        authority = RoleAuthority()
        assert authority.permissions_for(Role.CLIENT) == frozenset(EXPECTED[Role.CLIENT])
        assert authority.permissions_for(None) == frozenset()

    def test_default_matrix_is_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_PERMISSION_MATRIX[Role.CLIENT] = frozenset()  # type: ignore[index]


class TestCustomMatrix:
    def test_unlisted_roles_get_nothing(self):
        matrix = build_matrix({Role.CLIENT: {(AL, R)}})
        authority = RoleAuthority(matrix)

        assert authority.authorize(Role.CLIENT, Action.READ, AL)
        assert not authority.authorize(Role.CLIENT, Action.READ, SI)
        assert not authority.authorize(Role.DIRECTOR, Action.READ, SI)


class TestAuthorizeProperties:
    @given(
        kind=st.sampled_from(list(ResourceKind)),
        action=st.sampled_from(list(Action)),
    )
    def test_no_role_is_always_denied(self, kind, action):
        assert RoleAuthority().authorize(None, action, kind) is False

    @given(
        role=st.sampled_from(list(Role)),
        kind=st.sampled_from(list(ResourceKind)),
        action=st.sampled_from(list(Action)),
    )
    def test_authorize_agrees_with_permissions_for(self, role, kind, action):
        authority = RoleAuthority()
        assert authority.authorize(role, action, kind) == (
            (kind, action) in authority.permissions_for(role)
        )

    @given(
        role=st.sampled_from(list(Role)),
        kind=st.sampled_from(list(ResourceKind)),
    )
    def test_mutation_implies_read(self, role, kind):
        authority = RoleAuthority()
        if authority.authorize(role, Action.CREATE, kind) or authority.authorize(
            role, Action.UPDATE, kind
        ):
            assert authority.authorize(role, Action.READ, kind)
