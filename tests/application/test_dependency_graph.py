import pytest

from rsa_key_secret.application.services.dependency_graph import DependencyGraphBuilder
from rsa_key_secret.domain.entities.provisioning import DependencyEdge, ProvisioningOperation
from rsa_key_secret.domain.exceptions import DependencyUnresolved

SECRET = ProvisioningOperation("Resource")
ROLE = ProvisioningOperation("ExecutionRolePolicy")
GRANT = ProvisioningOperation("GrantLambdaRoleKeyAccess")
KEY_POLICY = ProvisioningOperation("KeyResourcePolicy")


@pytest.fixture
def builder():
    return DependencyGraphBuilder()


def test_without_key_only_role_edge(builder):
    edges = builder.order_secret_provisioning(SECRET, ROLE)
    assert edges == {DependencyEdge(SECRET, ROLE)}


def test_with_key_secret_waits_on_separate_grant(builder):
    edges = builder.order_secret_provisioning(SECRET, ROLE, GRANT)
    assert edges == {DependencyEdge(SECRET, ROLE), DependencyEdge(SECRET, GRANT)}


@pytest.mark.parametrize("grant", [None, GRANT])
def test_never_a_role_grant_cycle(builder, grant):
    edges = builder.order_secret_provisioning(SECRET, ROLE, grant) | builder.order_key_policy(
        KEY_POLICY, ROLE, grant
    )
    assert not (DependencyEdge(ROLE, GRANT) in edges and DependencyEdge(GRANT, ROLE) in edges)
    assert DependencyEdge(ROLE, GRANT) not in edges
    assert DependencyEdge(SECRET, KEY_POLICY) not in edges

    operations = [SECRET, ROLE, KEY_POLICY] + ([grant] if grant else [])
    order = builder.linearize(operations, edges)
    assert order.index(ROLE) < order.index(SECRET)
    assert order.index(ROLE) < order.index(KEY_POLICY)
    if grant:
        assert order.index(KEY_POLICY) < order.index(GRANT) < order.index(SECRET)


def test_key_policy_edges(builder):
    assert builder.order_key_policy(KEY_POLICY, ROLE) == {DependencyEdge(KEY_POLICY, ROLE)}
    assert builder.order_key_policy(KEY_POLICY, ROLE, GRANT) == {
        DependencyEdge(KEY_POLICY, ROLE),
        DependencyEdge(GRANT, KEY_POLICY),
    }


def test_cycle_is_unresolved(builder):
    edges = {DependencyEdge(ROLE, GRANT), DependencyEdge(GRANT, ROLE)}
    with pytest.raises(DependencyUnresolved):
        builder.linearize([ROLE, GRANT], edges)


def test_unknown_operation_is_unresolved(builder):
    with pytest.raises(DependencyUnresolved):
        builder.linearize([SECRET], {DependencyEdge(SECRET, ROLE)})
