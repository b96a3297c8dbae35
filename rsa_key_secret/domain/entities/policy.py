"""
Domain entities for IAM / KMS policy statements and policies.
Zero external dependencies. Pure Python dataclasses only.

Statements compare and hash by what they grant (effect, actions, resources,
principal, conditions); the Sid is a label and takes no part in equality.
A Policy is append-only: adding a statement it already holds is a no-op, so
composing grants is a set union that does not depend on call order.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from rsa_key_secret.domain.entities.arn import ArnPattern
from rsa_key_secret.domain.exceptions import PolicyConflict

ALL_RESOURCES = "*"

_SCALARS = (str, ArnPattern, bool, int, float)

Scalar = Union[str, ArnPattern, bool, int, float]
ConditionValue = Union[Scalar, Iterable[Scalar]]
Conditions = tuple[tuple[str, tuple[tuple[str, tuple[str, ...]], ...]], ...]


def _text(value: Any) -> str:
    # JSON booleans compare as IAM writes them
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _values(value: ConditionValue) -> tuple[str, ...]:
    if isinstance(value, _SCALARS):
        return (_text(value),)
    return tuple(sorted({_text(v) for v in value}))


def _freeze_conditions(
    conditions: Optional[Mapping[str, Mapping[str, ConditionValue]]],
) -> Conditions:
    if not conditions:
        return ()
    return tuple(
        sorted(
            (operator, tuple(sorted((key, _values(value)) for key, value in entries.items())))
            for operator, entries in conditions.items()
        )
    )


@dataclass(frozen=True)
class PolicyStatement:
    actions: frozenset[str]
    resources: frozenset[str]
    principal: Optional[str] = None
    conditions: Conditions = ()
    effect: str = "Allow"
    sid: Optional[str] = field(default=None, compare=False)

    @classmethod
    def build(
        cls,
        actions: Iterable[str],
        resources: Iterable[Union[str, ArnPattern]],
        principal: Optional[str] = None,
        conditions: Optional[Mapping[str, Mapping[str, ConditionValue]]] = None,
        effect: str = "Allow",
        sid: Optional[str] = None,
    ) -> "PolicyStatement":
        return cls(
            actions=frozenset(actions),
            resources=frozenset(str(r) for r in resources),
            principal=principal,
            conditions=_freeze_conditions(conditions),
            effect=effect,
            sid=sid,
        )

    @classmethod
    def from_json(cls, document: Mapping[str, Any]) -> "PolicyStatement":
        """Parse one IAM JSON statement. Only the AWS principal form is understood."""

        def as_list(value: Any) -> list:
            if value is None:
                return []
            return [value] if isinstance(value, _SCALARS) else list(value)

        principal = document.get("Principal")
        if isinstance(principal, Mapping):
            aws = as_list(principal.get("AWS"))
            principal = aws[0] if len(aws) == 1 else None
        return cls.build(
            actions=as_list(document.get("Action")),
            resources=as_list(document.get("Resource")),
            principal=principal,
            conditions={
                operator: {key: as_list(value) for key, value in entries.items()}
                for operator, entries in (document.get("Condition") or {}).items()
            },
            effect=document.get("Effect", "Allow"),
            sid=document.get("Sid"),
        )

    def condition(self, operator: str, key: str) -> tuple[str, ...]:
        for op, entries in self.conditions:
            if op != operator:
                continue
            for k, values in entries:
                if k == key:
                    return values
        return ()

    def contradicts(self, other: "PolicyStatement") -> bool:
        """True when one side denies what the other allows for the same principal."""
        if self.effect == other.effect:
            return False
        if self.principal != other.principal:
            return False
        return bool(self.actions & other.actions) and bool(
            self.resources & other.resources
            or ALL_RESOURCES in self.resources
            or ALL_RESOURCES in other.resources
        )

    def to_json(self) -> dict:
        def one_or_many(values: Iterable[str]) -> Union[str, list[str]]:
            ordered = sorted(values)
            return ordered[0] if len(ordered) == 1 else ordered

        document: dict[str, Any] = {}
        if self.sid:
            document["Sid"] = self.sid
        document["Effect"] = self.effect
        if self.principal:
            document["Principal"] = {"AWS": self.principal}
        document["Action"] = one_or_many(self.actions)
        document["Resource"] = one_or_many(self.resources)
        if self.conditions:
            document["Condition"] = {
                operator: {key: values[0] if len(values) == 1 else list(values) for key, values in entries}
                for operator, entries in self.conditions
            }
        return document


@dataclass
class Policy:
    """A named, ordered set of statements attached to one identity or one resource."""

    name: str
    statements: list[PolicyStatement] = field(default_factory=list)

    def add(self, statement: PolicyStatement) -> bool:
        """Append *statement* unless an equivalent one is already present.

        Returns True when the policy changed.

        Raises:
            PolicyConflict: if an existing statement reuses the Sid with other
                            content, or denies what *statement* allows.
        """
        for existing in self.statements:
            if existing == statement:
                return False
        for existing in self.statements:
            if statement.sid and existing.sid == statement.sid:
                raise PolicyConflict(
                    f"Policy {self.name!r} already holds a different statement with Sid {statement.sid!r}"
                )
            if existing.contradicts(statement):
                raise PolicyConflict(
                    f"Policy {self.name!r} holds a {existing.effect} statement overlapping "
                    f"{sorted(statement.actions)} on {sorted(statement.resources)}"
                )
        self.statements.append(statement)
        return True

    def extend(self, statements: Iterable[PolicyStatement]) -> bool:
        changed = False
        for statement in statements:
            changed = self.add(statement) or changed
        return changed

    def to_json(self) -> dict:
        return {
            "Version": "2012-10-17",
            "Statement": [statement.to_json() for statement in self.statements],
        }

    @classmethod
    def from_json(cls, name: str, document: Mapping[str, Any]) -> "Policy":
        raw = document.get("Statement") or []
        if isinstance(raw, Mapping):
            raw = [raw]
        return cls(name=name, statements=[PolicyStatement.from_json(s) for s in raw])
