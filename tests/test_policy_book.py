from datetime import date

import pytest

from swiftclaim.errors import InvalidPolicy, PolicyNotFound
from swiftclaim.state.claim_state import PolicyStatus


def _register(policy_book, **overrides):
    fields = dict(
        holder_id="holder-priya",
        provider_id="provider-manipal",
        coverage_amount=300_000.0,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
    )
    fields.update(overrides)
    return policy_book.register(**fields)


class TestRegister:

    def test_generated_id_and_defaults(self, policy_book):
        policy = _register(policy_book)

        assert policy.policy_id.startswith("POL-")
        assert policy.status == PolicyStatus.ACTIVE
        assert policy.policy_type == "health"
        assert policy_book.get(policy.policy_id) == policy

    def test_explicit_id(self, policy_book):
        assert _register(policy_book, policy_id="POL-2024-0042").policy_id == "POL-2024-0042"

    def test_duplicate_id(self, policy_book):
        _register(policy_book, policy_id="POL-2024-0042")
        with pytest.raises(InvalidPolicy):
            _register(policy_book, policy_id="POL-2024-0042")

    @pytest.mark.parametrize("overrides", [
        {"coverage_amount": 0},
        {"coverage_amount": -10.0},
        {"premium": -1.0},
        {"end_date": date(2023, 12, 31)},
        {"start_date": "not-a-date"},
        {"holder_id": ""},
    ])
    def test_invalid_definitions(self, policy_book, overrides):
        with pytest.raises(InvalidPolicy):
            _register(policy_book, **overrides)

    def test_unknown_policy(self, policy_book):
        with pytest.raises(PolicyNotFound):
            policy_book.get("POL-MISSING")


class TestStatusChanges:

    def test_suspend_and_reactivate(self, policy_book):
        policy = _register(policy_book)

        assert policy_book.change_status(policy.policy_id, "suspended").status == PolicyStatus.SUSPENDED
        assert policy_book.change_status(policy.policy_id, PolicyStatus.ACTIVE).status == PolicyStatus.ACTIVE

    @pytest.mark.parametrize("final", [PolicyStatus.EXPIRED, PolicyStatus.CANCELLED])
    def test_final_statuses_are_immutable(self, policy_book, final):
        policy = _register(policy_book)
        policy_book.change_status(policy.policy_id, final)

        with pytest.raises(InvalidPolicy):
            policy_book.change_status(policy.policy_id, PolicyStatus.ACTIVE)

    def test_same_status_is_a_no_op(self, policy_book):
        policy = _register(policy_book)
        assert policy_book.change_status(policy.policy_id, "ACTIVE") == policy

    def test_unknown_status(self, policy_book):
        policy = _register(policy_book)
        with pytest.raises(InvalidPolicy):
            policy_book.change_status(policy.policy_id, "LAPSED")
