"""
Tests for the role-gated workflow engine (``reimburse_engines.workflow_engine``).

Tests cover:
- Full happy path: Submitted -> Forwarded -> Coordinator approved ->
  PI approved -> Finance paid, five history entries
- Rejection mid-flow with a reason
- Authorization completeness: wrong role / wrong state -> NotPermitted,
  state unchanged
- Idempotence under retry on a stale snapshot
- Fund-source scoping of the coordinator step
- Payload validation (paid amount, reject reason, approval letter)
- permitted_actions, attachments and signatures
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from reimburse_engines.workflow_engine import (
    DEFAULT_LETTER_TEMPLATE,
    LETTER_PLACEHOLDERS,
    attach_file,
    attempt,
    default_approval_letter,
    is_permitted,
    letter_template_placeholders,
    permitted_actions,
    sign_request,
)
from reimburse_kernel.domain.reimbursement import (
    Action,
    ActionPayload,
    AttachmentRef,
    RequestStatus,
)
from reimburse_kernel.exceptions import (
    InvalidAmountError,
    MissingPayloadError,
    NotPermittedError,
)


# =========================================================================
# Happy path and rejection
# =========================================================================


class TestHappyPath:
    """The complete approval chain."""

    def test_full_chain_reaches_paid(self, make_request, advance):
        request = advance(make_request(amounts=("150", "50")), 4)

        assert request.status == RequestStatus.PAID
        assert request.reimbursed == Decimal("200")
        assert request.approval_letter == "Approved."
        assert [h.action for h in request.history] == [
            "Submitted",
            "Forwarded",
            "Coordinator approved",
            "PI approved",
            "Finance paid 200",
        ]
        assert [h.role for h in request.history] == [
            "Field Staff", "Facilitator", "Coordinator", "PI", "Finance",
        ]

    def test_each_step_bumps_version(self, make_request, advance):
        request = make_request()
        assert request.version == 1
        assert advance(request, 4).version == 5

    def test_history_is_append_only(self, make_request, advance):
        previous = make_request()
        for steps in range(1, 5):
            current = advance(make_request(), steps)
            assert len(current.history) == steps + 1
        final = advance(previous, 4)
        assert final.history[0] == previous.history[0]

    def test_input_snapshot_untouched(self, make_request, facilitator, deterministic_clock):
        request = make_request()
        result = attempt(request, facilitator, Action.FORWARD, at=deterministic_clock.now())
        assert result.success
        assert request.status == RequestStatus.PENDING_FACILITATOR
        assert len(request.history) == 1

    def test_history_entry_records_actor_and_time(
        self, make_request, facilitator, deterministic_clock,
    ):
        at = deterministic_clock.tick()
        request = attempt(make_request(), facilitator, Action.FORWARD, at=at).unwrap()
        entry = request.history[-1]
        assert entry.who == "Facilitator"
        assert entry.role == "Facilitator"
        assert entry.at == at


class TestRejection:
    """Reject from each pending state."""

    def test_reject_mid_flow(self, make_request, advance, coordinator, deterministic_clock):
        request = advance(make_request(), 1)

        result = attempt(
            request, coordinator, Action.REJECT,
            ActionPayload(reason="missing receipt"),
            at=deterministic_clock.tick(),
        )

        assert result.success
        rejected = result.request
        assert rejected.status == RequestStatus.REJECTED
        assert rejected.history[-1].action == "Rejected: missing receipt"
        assert len(rejected.history) == 3

    def test_reject_requires_reason(self, make_request, facilitator, deterministic_clock):
        request = make_request()
        result = attempt(
            request, facilitator, Action.REJECT, ActionPayload(reason="   "),
            at=deterministic_clock.now(),
        )
        assert not result.success
        assert isinstance(result.error, MissingPayloadError)
        assert result.error.field_name == "reason"
        assert result.code == "MISSING_PAYLOAD"

    @pytest.mark.parametrize("steps,actor_name", [
        (0, "facilitator"),
        (1, "coordinator"),
        (2, "pi"),
        (3, "finance"),
    ])
    def test_reject_reachable_from_every_pending_state(
        self, request, make_request, advance, deterministic_clock, steps, actor_name,
    ):
        actor = request.getfixturevalue(actor_name)
        pending = advance(make_request(), steps)
        result = attempt(
            pending, actor, Action.REJECT, ActionPayload(reason="no"),
            at=deterministic_clock.tick(),
        )
        assert result.request.status == RequestStatus.REJECTED

    def test_terminal_states_accept_nothing(self, make_request, advance, all_actors, deterministic_clock):
        paid = advance(make_request(), 4)
        for actor in all_actors:
            assert permitted_actions(paid, actor) == ()
            for action in Action:
                result = attempt(
                    paid, actor, action, ActionPayload(reason="x", paid_amount="1"),
                    at=deterministic_clock.now(),
                )
                assert not result.success


# =========================================================================
# Authorization
# =========================================================================


class TestAuthorization:
    """Only the owning role, in the right state, may act."""

    def test_wrong_role_not_permitted(self, make_request, field_staff, pi, finance, deterministic_clock):
        request = make_request()
        for actor in (field_staff, pi, finance):
            result = attempt(request, actor, Action.FORWARD, at=deterministic_clock.now())
            assert not result.success
            assert isinstance(result.error, NotPermittedError)

    def test_wrong_state_not_permitted(self, make_request, coordinator, deterministic_clock):
        result = attempt(
            make_request(), coordinator, Action.COORDINATOR_APPROVE,
            at=deterministic_clock.now(),
        )
        assert result.code == "NOT_PERMITTED"

    def test_unknown_action_not_permitted(self, make_request, admin, deterministic_clock):
        result = attempt(make_request(), admin, "escalate", at=deterministic_clock.now())
        assert isinstance(result.error, NotPermittedError)
        assert result.error.action == "escalate"

    def test_submit_is_not_a_transition(self, make_request, field_staff, deterministic_clock):
        result = attempt(make_request(), field_staff, Action.SUBMIT, at=deterministic_clock.now())
        assert not result.success

    def test_admin_may_pi_approve(self, make_request, advance, admin, deterministic_clock):
        pending_pi = advance(make_request(), 2)
        result = attempt(pending_pi, admin, Action.PI_APPROVE, at=deterministic_clock.tick())
        assert result.request.status == RequestStatus.APPROVED_FOR_FINANCE
        assert result.request.history[-1].role == "Admin"

    def test_authorization_checked_before_payload(self, make_request, field_staff, deterministic_clock):
        result = attempt(make_request(), field_staff, Action.REJECT, at=deterministic_clock.now())
        assert isinstance(result.error, NotPermittedError)

    def test_unwrap_raises_typed_error(self, make_request, finance, deterministic_clock):
        result = attempt(make_request(), finance, Action.MARK_PAID, at=deterministic_clock.now())
        with pytest.raises(NotPermittedError):
            result.unwrap()

    def test_rejection_logged(self, make_request, finance, deterministic_clock, captured_logs):
        attempt(make_request(), finance, Action.MARK_PAID, at=deterministic_clock.now())
        logs = captured_logs()
        rejected = [r for r in logs if r["message"] == "transition_rejected"]
        assert rejected and rejected[0]["code"] == "NOT_PERMITTED"


class TestIdempotence:
    """Retrying an applied action on the stale snapshot does nothing."""

    def test_forward_twice(self, make_request, facilitator, deterministic_clock):
        request = make_request()
        once = attempt(request, facilitator, Action.FORWARD, at=deterministic_clock.tick()).unwrap()
        again = attempt(once, facilitator, Action.FORWARD, at=deterministic_clock.tick())

        assert not again.success
        assert once.status == RequestStatus.PENDING_COORDINATOR
        assert len(once.history) == 2

    def test_mark_paid_twice(self, make_request, advance, finance, deterministic_clock):
        paid = advance(make_request(), 4)
        again = attempt(
            paid, finance, Action.MARK_PAID, ActionPayload(paid_amount="200"),
            at=deterministic_clock.tick(),
        )
        assert not again.success
        assert paid.reimbursed == Decimal("200")


class TestFundSourceScope:
    """Coordinators only act on their own funders' requests."""

    def test_in_scope_coordinator_approves(self, make_request, advance, coordinator, deterministic_clock):
        request = advance(make_request(funder="FunderA"), 1)
        assert is_permitted(request, coordinator, Action.COORDINATOR_APPROVE)

    def test_out_of_scope_coordinator_refused(
        self, make_request, advance, other_coordinator, deterministic_clock,
    ):
        request = advance(make_request(funder="FunderA"), 1)
        result = attempt(
            request, other_coordinator, Action.COORDINATOR_APPROVE,
            at=deterministic_clock.tick(),
        )
        assert isinstance(result.error, NotPermittedError)

    def test_out_of_scope_coordinator_cannot_reject(
        self, make_request, advance, other_coordinator, deterministic_clock,
    ):
        request = advance(make_request(funder="FunderA"), 1)
        result = attempt(
            request, other_coordinator, Action.REJECT, ActionPayload(reason="no"),
            at=deterministic_clock.tick(),
        )
        assert not result.success

    def test_coordinator_without_fund_sources_approves_nothing(
        self, make_request, advance, coordinator, deterministic_clock,
    ):
        from dataclasses import replace

        unscoped = replace(coordinator, fund_sources=frozenset())
        request = advance(make_request(), 1)
        assert permitted_actions(request, unscoped) == ()


# =========================================================================
# Payloads
# =========================================================================


class TestPayloads:
    """Per-action inputs."""

    def test_mark_paid_requires_amount(self, make_request, advance, finance, deterministic_clock):
        approved = advance(make_request(), 3)
        result = attempt(approved, finance, Action.MARK_PAID, at=deterministic_clock.tick())
        assert isinstance(result.error, MissingPayloadError)
        assert result.error.field_name == "paid_amount"

    def test_mark_paid_rejects_negative(self, make_request, advance, finance, deterministic_clock):
        approved = advance(make_request(), 3)
        result = attempt(
            approved, finance, Action.MARK_PAID, ActionPayload(paid_amount="-5"),
            at=deterministic_clock.tick(),
        )
        assert isinstance(result.error, InvalidAmountError)
        assert result.code == "INVALID_AMOUNT"

    def test_mark_paid_rejects_huge_exponent(
        self, make_request, advance, finance, deterministic_clock,
    ):
        approved = advance(make_request(), 3)
        result = attempt(
            approved, finance, Action.MARK_PAID, ActionPayload(paid_amount="1e1000000"),
            at=deterministic_clock.tick(),
        )
        assert isinstance(result.error, InvalidAmountError)
        assert result.error.reason == "too large"
        assert approved.status == RequestStatus.APPROVED_FOR_FINANCE

    def test_partial_payment_recorded_as_entered(
        self, make_request, advance, finance, deterministic_clock,
    ):
        approved = advance(make_request(amounts=("500",)), 3)
        paid = attempt(
            approved, finance, Action.MARK_PAID, ActionPayload(paid_amount="120.50"),
            at=deterministic_clock.tick(),
        ).unwrap()
        assert paid.reimbursed == Decimal("120.50")
        assert paid.history[-1].action == "Finance paid 120.5"

    def test_blank_letter_gets_default(self, make_request, advance, pi, deterministic_clock):
        pending_pi = advance(make_request(amounts=("150", "50")), 2)
        at = deterministic_clock.tick()
        approved = attempt(
            pending_pi, pi, Action.PI_APPROVE, ActionPayload(approval_letter="  "), at=at,
        ).unwrap()
        assert approved.approval_letter == default_approval_letter(pending_pi, pi, at)
        assert "total 200" in approved.approval_letter

    def test_letter_template_and_currency(self, make_request, advance, pi, deterministic_clock):
        pending_pi = advance(make_request(amounts=("10",)), 2)
        approved = attempt(
            pending_pi, pi, Action.PI_APPROVE,
            at=deterministic_clock.tick(),
            letter_template="Pay {total} to {created_by_name}",
            currency_label="ETB",
        ).unwrap()
        assert approved.approval_letter == "Pay 10 ETB to Field Worker A"

    def test_default_template_uses_only_known_placeholders(self):
        assert letter_template_placeholders(DEFAULT_LETTER_TEMPLATE) <= LETTER_PLACEHOLDERS

    def test_automatic_and_positional_fields_reported(self):
        assert letter_template_placeholders("Total {} and {0}") == frozenset({"", "0"})


# =========================================================================
# Permitted actions
# =========================================================================


class TestPermittedActions:
    """Which buttons an actor sees."""

    def test_facilitator_on_new_request(self, make_request, facilitator):
        assert permitted_actions(make_request(), facilitator) == (Action.FORWARD, Action.REJECT)

    def test_field_staff_has_none(self, make_request, field_staff):
        assert permitted_actions(make_request(), field_staff) == ()

    def test_finance_after_pi(self, make_request, advance, finance):
        approved = advance(make_request(), 3)
        assert permitted_actions(approved, finance) == (Action.MARK_PAID, Action.REJECT)

    def test_permitted_actions_agree_with_attempt(
        self, make_request, advance, all_actors, deterministic_clock,
    ):
        payload = ActionPayload(reason="r", paid_amount="1")
        for steps in range(5):
            request = advance(make_request(), steps)
            for actor in all_actors:
                allowed = set(permitted_actions(request, actor))
                for action in Action:
                    result = attempt(request, actor, action, payload, at=deterministic_clock.now())
                    assert result.success == (action in allowed)


# =========================================================================
# Attachments and signatures
# =========================================================================


class TestAttachmentsAndSignatures:
    """Non-status mutations."""

    def test_attach_prepends_without_history(self, make_request, field_staff):
        request = make_request()
        first = AttachmentRef(ref_id=uuid4(), name="receipt.pdf", content_type="application/pdf")
        second = AttachmentRef(ref_id=uuid4(), name="photo.jpg", content_type="image/jpeg")

        updated = attach_file(attach_file(request, field_staff, first).unwrap(), field_staff, second).unwrap()

        assert updated.attachments == (second, first)
        assert updated.history == request.history
        assert updated.status == request.status
        assert updated.version == request.version + 2

    def test_attach_requires_visibility(self, make_request, other_field_staff):
        ref = AttachmentRef(ref_id=uuid4(), name="x")
        result = attach_file(make_request(), other_field_staff, ref)
        assert isinstance(result.error, NotPermittedError)

    def test_sign_keyed_by_role_and_replaced(self, make_request, pi):
        request = make_request()
        once = sign_request(request, pi, b"first").unwrap()
        twice = sign_request(once, pi, b"second").unwrap()
        assert dict(twice.signatures) == {"PI": b"second"}
        assert twice.history == request.history

    def test_sign_requires_visibility(self, make_request, other_coordinator):
        result = sign_request(make_request(funder="FunderA"), other_coordinator, b"img")
        assert not result.success


# =========================================================================
# End-to-end scenarios
# =========================================================================


class TestScenarios:
    """Named walk-throughs of the approval chain."""

    def test_happy_path_paid_500(
        self, make_request, facilitator, coordinator, pi, finance, deterministic_clock,
    ):
        request = make_request(amounts=("300", "200"))
        assert request.status == RequestStatus.PENDING_FACILITATOR

        request = attempt(request, facilitator, Action.FORWARD, at=deterministic_clock.tick()).unwrap()
        assert request.status == RequestStatus.PENDING_COORDINATOR
        request = attempt(
            request, coordinator, Action.COORDINATOR_APPROVE, at=deterministic_clock.tick(),
        ).unwrap()
        assert request.status == RequestStatus.PENDING_PI
        request = attempt(
            request, pi, Action.PI_APPROVE,
            ActionPayload(approval_letter="Approved, see attached"),
            at=deterministic_clock.tick(),
        ).unwrap()
        assert request.status == RequestStatus.APPROVED_FOR_FINANCE
        assert request.approval_letter == "Approved, see attached"
        request = attempt(
            request, finance, Action.MARK_PAID, ActionPayload(paid_amount=500),
            at=deterministic_clock.tick(),
        ).unwrap()

        assert request.status == RequestStatus.PAID
        assert request.reimbursed == Decimal("500")
        assert len(request.history) == 5

    def test_rejection_at_pi_then_terminal(
        self, make_request, advance, pi, coordinator, deterministic_clock,
    ):
        pending_pi = advance(make_request(), 2)
        rejected = attempt(
            pending_pi, pi, Action.REJECT, ActionPayload(reason="Missing receipts"),
            at=deterministic_clock.tick(),
        ).unwrap()

        assert rejected.status == RequestStatus.REJECTED
        assert rejected.history[-1].action == "Rejected: Missing receipts"

        again = attempt(
            rejected, coordinator, Action.COORDINATOR_APPROVE, at=deterministic_clock.tick(),
        )
        assert isinstance(again.error, NotPermittedError)
