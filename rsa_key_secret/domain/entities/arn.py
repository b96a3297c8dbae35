"""
Domain entities for ARNs and forward-reference ARN patterns.
Zero external dependencies. Pure Python dataclasses only.
"""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class AwsEnvironment:
    """Ambient partition / region / account every ARN is formatted against."""

    partition: str
    region: str
    account_id: str


@dataclass(frozen=True)
class ArnPattern:
    """The eventual ARN of a resource that does not exist yet.

    Only ever used in policy resource and condition fields. Wildcards follow
    IAM ArnLike / StringLike rules: ``?`` is exactly one character, ``*`` is
    any run of characters, everything else is literal.
    """

    value: str

    def __str__(self) -> str:
        return self.value

    def matches(self, arn: str) -> bool:
        return _compile(self.value).fullmatch(arn) is not None


def _compile(pattern: str) -> "re.Pattern[str]":
    parts = []
    for ch in pattern:
        if ch == "?":
            parts.append(".")
        elif ch == "*":
            parts.append(".*")
        else:
            parts.append(re.escape(ch))
    return re.compile("".join(parts), re.DOTALL)
