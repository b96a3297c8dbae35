"""
Tests for the policy and ARN pattern entities.
"""

import pytest

from rsa_key_secret.domain.entities.arn import ArnPattern
from rsa_key_secret.domain.entities.policy import Policy, PolicyStatement
from rsa_key_secret.domain.exceptions import PolicyConflict

PRINCIPAL = "arn:aws:iam::123456789012:role/App"


def _decrypt(sid=None, principal=PRINCIPAL, effect="Allow"):
    return PolicyStatement.build(
        actions=["kms:Decrypt"],
        resources=["*"],
        principal=principal,
        conditions={"StringEquals": {"kms:ViaService": "secretsmanager.us-east-1.amazonaws.com"}},
        effect=effect,
        sid=sid,
    )


class TestPolicyStatement:
    @staticmethod
    def test_equality_ignores_sid_and_ordering():
        a = PolicyStatement.build(actions=["b", "a"], resources=["r1", "r2"], sid="One")
        b = PolicyStatement.build(actions=["a", "b"], resources=["r2", "r1"], sid="Two")
        assert a == b
        assert hash(a) == hash(b)

    @staticmethod
    def test_condition_values_are_normalized():
        a = PolicyStatement.build(["x"], ["*"], conditions={"StringLike": {"k": ["v2", "v1"]}})
        b = PolicyStatement.build(["x"], ["*"], conditions={"StringLike": {"k": ["v1", "v2", "v1"]}})
        assert a == b
        assert a.condition("StringLike", "k") == ("v1", "v2")
        assert a.condition("ArnLike", "k") == ()

    @staticmethod
    def test_json_round_trip_preserves_meaning():
        statement = _decrypt(sid="Grant")
        document = statement.to_json()

        assert document["Principal"] == {"AWS": PRINCIPAL}
        assert document["Action"] == "kms:Decrypt"
        assert PolicyStatement.from_json(document) == statement
        assert PolicyStatement.from_json(document).sid == "Grant"

    @staticmethod
    def test_identity_statement_has_no_principal_block():
        statement = PolicyStatement.build(actions=["secretsmanager:GetSecretValue"], resources=["arn:x"])
        assert "Principal" not in statement.to_json()

    @staticmethod
    def test_scalar_condition_values_from_json():
        statement = PolicyStatement.from_json(
            {
                "Effect": "Allow",
                "Action": "kms:DisableKey",
                "Resource": "*",
                "Condition": {
                    "NumericLessThan": {"aws:MultiFactorAuthAge": 3600},
                    "Bool": {"aws:SecureTransport": True, "aws:ViaAWSService": [False]},
                },
            }
        )
        assert statement.condition("NumericLessThan", "aws:MultiFactorAuthAge") == ("3600",)
        assert statement.condition("Bool", "aws:SecureTransport") == ("true",)
        assert statement.condition("Bool", "aws:ViaAWSService") == ("false",)


class TestPolicy:
    @staticmethod
    def test_adding_same_content_twice_is_noop():
        policy = Policy(name="p")
        assert policy.add(_decrypt()) is True
        assert policy.add(_decrypt(sid="Other")) is False
        assert len(policy.statements) == 1

    @staticmethod
    def test_additions_for_different_principals_accumulate():
        policy = Policy(name="p")
        policy.add(_decrypt(principal="arn:aws:iam::123456789012:role/X"))
        policy.add(_decrypt(principal="arn:aws:iam::123456789012:role/Y"))
        assert len(policy.statements) == 2

    @staticmethod
    def test_reused_sid_with_other_content_conflicts():
        policy = Policy(name="p", statements=[_decrypt(sid="Grant")])
        other = PolicyStatement.build(actions=["kms:Encrypt"], resources=["*"], sid="Grant")
        with pytest.raises(PolicyConflict):
            policy.add(other)

    @staticmethod
    def test_explicit_deny_conflicts():
        policy = Policy(name="p", statements=[_decrypt(effect="Deny")])
        with pytest.raises(PolicyConflict):
            policy.add(_decrypt())

    @staticmethod
    def test_from_json_accepts_single_statement_object():
        policy = Policy.from_json("p", {"Statement": _decrypt().to_json()})
        assert policy.statements == [_decrypt()]


class TestArnPattern:
    @staticmethod
    @pytest.mark.parametrize(
        "arn,expected",
        [
            ("arn:aws:secretsmanager:us-east-1:1:secret:db-AbC123", True),
            ("arn:aws:secretsmanager:us-east-1:1:secret:db-AbC12", False),
            ("arn:aws:secretsmanager:us-east-1:1:secret:db-AbC1234", False),
            ("arn:aws:secretsmanager:us-east-1:1:secret:dbXAbC123", False),
        ],
    )
    def test_question_mark_is_exactly_one_character(arn, expected):
        assert ArnPattern("arn:aws:secretsmanager:us-east-1:1:secret:db-??????").matches(arn) is expected

    @staticmethod
    def test_star_and_literals():
        pattern = ArnPattern("arn:aws:s3:::bucket.name/*")
        assert pattern.matches("arn:aws:s3:::bucket.name/a/b")
        assert not pattern.matches("arn:aws:s3:::bucketXname/a")
