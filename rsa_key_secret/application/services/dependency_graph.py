"""
Application service: ordering edges of the provisioning graph.

The execution role needs the KMS key, and the key policy names the role. Both
facts are true, but neither may become a graph edge pointing back at the other.
The role's key access is materialized as a separate policy object attached to
the role; the secret waits on that object and on the role, never on the key
policy itself.
"""

from graphlib import CycleError, TopologicalSorter
from typing import Iterable, Optional

from rsa_key_secret.domain.entities.provisioning import DependencyEdge, ProvisioningOperation
from rsa_key_secret.domain.exceptions import DependencyUnresolved


class DependencyGraphBuilder:
    def order_secret_provisioning(
        self,
        secret_op: ProvisioningOperation,
        role_op: ProvisioningOperation,
        key_grant_op: Optional[ProvisioningOperation] = None,
    ) -> frozenset[DependencyEdge]:
        """Edges that must hold before the secret is dispatched.

        Without *key_grant_op* only the role edge exists; the key-grant branch
        is skipped entirely.
        """
        edges = {DependencyEdge(dependent=secret_op, prerequisite=role_op)}
        if key_grant_op is not None:
            edges.add(DependencyEdge(dependent=secret_op, prerequisite=key_grant_op))
        return frozenset(edges)

    def order_key_policy(
        self,
        key_policy_op: ProvisioningOperation,
        role_op: ProvisioningOperation,
        key_grant_op: Optional[ProvisioningOperation] = None,
    ) -> frozenset[DependencyEdge]:
        """The key policy references the role ARN, so it waits for the role.

        The key-grant policy references the key, so it waits for the key
        policy; the secret reaches the key policy only through the grant.
        """
        edges = {DependencyEdge(dependent=key_policy_op, prerequisite=role_op)}
        if key_grant_op is not None:
            edges.add(DependencyEdge(dependent=key_grant_op, prerequisite=key_policy_op))
        return frozenset(edges)

    def linearize(
        self,
        operations: Iterable[ProvisioningOperation],
        edges: Iterable[DependencyEdge],
    ) -> list[ProvisioningOperation]:
        """Return *operations* in an order that honors every edge.

        Raises:
            DependencyUnresolved: if an edge names an unknown operation or the
                                  edges form a cycle.
        """
        known = list(operations)
        graph: dict[ProvisioningOperation, set[ProvisioningOperation]] = {op: set() for op in known}
        for edge in edges:
            for op in (edge.dependent, edge.prerequisite):
                if op not in graph:
                    raise DependencyUnresolved(f"Edge refers to unknown operation {op.name!r}")
            graph[edge.dependent].add(edge.prerequisite)
        try:
            return list(TopologicalSorter(graph).static_order())
        except CycleError as exc:
            cycle = " -> ".join(op.name for op in exc.args[1])
            raise DependencyUnresolved(f"Provisioning graph has a cycle: {cycle}") from exc
