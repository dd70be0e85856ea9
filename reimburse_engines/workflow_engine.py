"""
reimburse_engines.workflow_engine -- Role-gated request transitions.

Responsibility:
    Decide whether an actor may perform an action on a request and, if so,
    produce the next request snapshot: new status, one new history entry,
    and the action's own field changes (approval letter, reimbursed
    amount).  Also answers "which actions may this actor take here?" and
    applies the two non-status mutations (attachments, signatures).

Architecture position:
    Engines -- pure decision layer, zero I/O.  Time is passed in as ``at``.
    May only import reimburse_kernel/domain types and exceptions.

Invariants enforced:
    - Permission iff the actor's role owns a transition out of the
      request's *current* status and that transition's guard holds.
      Role mismatch, wrong state, failed scope, unknown action: all the
      same NotPermitted outcome, with no detail.
    - Authorization is decided before payload validation.
    - A transition appends exactly one HistoryEntry; existing entries are
      carried over untouched.
    - Retrying an action on a stale snapshot is rejected: the status has
      moved past the transition's from-state.
    - Paid and Rejected have no outgoing transitions.

Failure modes:
    - Every rejection is returned as ``TransitionResult(success=False)``
      carrying the typed exception; nothing is raised for expected
      outcomes.  ``TransitionResult.unwrap()`` raises it for callers that
      prefer exceptions.
"""

from __future__ import annotations

import string
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime

from reimburse_engines.tracer import traced_engine
from reimburse_engines.visibility import can_see
from reimburse_kernel.domain.reimbursement import (
    Action,
    ActionPayload,
    AttachmentRef,
    HistoryEntry,
    Request,
    RequestStatus,
    User,
    format_amount,
    to_amount,
)
from reimburse_kernel.domain.request_workflow import FUND_SOURCE_SCOPE, REQUEST_WORKFLOW
from reimburse_kernel.domain.workflow import Guard, Transition
from reimburse_kernel.exceptions import (
    InvalidAmountError,
    MissingPayloadError,
    NotPermittedError,
    ReimbursementError,
)
from reimburse_kernel.logging_config import get_logger

logger = get_logger("engines.workflow")

DEFAULT_LETTER_TEMPLATE = (
    "APPROVAL LETTER\n"
    "\n"
    "Request {request_id} submitted by {created_by_name} on {submitted_on} "
    "for {funder} / {program} ({item_count} item(s), total {total}) "
    "is approved for payment.\n"
    "\n"
    "{approver_name}\n"
    "{approver_role}\n"
    "{date}"
)

LETTER_PLACEHOLDERS: frozenset[str] = frozenset({
    "request_id",
    "created_by_name",
    "submitted_on",
    "funder",
    "program",
    "item_count",
    "total",
    "approver_name",
    "approver_role",
    "date",
})


# =========================================================================
# Result
# =========================================================================


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of an engine call: the next snapshot, or the rejection."""

    success: bool
    request: Request | None = None
    error: ReimbursementError | None = None

    @property
    def code(self) -> str:
        return self.error.code if self.error is not None else ""

    @property
    def reason(self) -> str:
        return str(self.error) if self.error is not None else ""

    def unwrap(self) -> Request:
        """Return the new request, or raise the rejection's typed exception."""
        if self.error is not None:
            raise self.error
        assert self.request is not None
        return self.request


def _accepted(request: Request) -> TransitionResult:
    return TransitionResult(success=True, request=request)


def _rejected(error: ReimbursementError) -> TransitionResult:
    return TransitionResult(success=False, error=error)


# =========================================================================
# Guards
# =========================================================================


def _fund_source_scope(request: Request, actor: User) -> bool:
    return actor.covers_funder(request.funder)


_GUARD_EVALUATORS: dict[str, Callable[[Request, User], bool]] = {
    FUND_SOURCE_SCOPE.name: _fund_source_scope,
}


def _guard_holds(guard: Guard | None, request: Request, actor: User) -> bool:
    if guard is None:
        return True
    evaluator = _GUARD_EVALUATORS.get(guard.name)
    if evaluator is None:
        # Unknown guard: fail closed.
        logger.warning("guard_not_registered", extra={"guard": guard.name})
        return False
    return evaluator(request, actor)


# =========================================================================
# Permission evaluation
# =========================================================================


def _authorized_transition(
    request: Request, actor: User, action: Action | str,
) -> Transition | None:
    try:
        action = Action(action)
    except ValueError:
        return None
    transition = REQUEST_WORKFLOW.find_transition(request.status.value, action.value)
    if transition is None:
        return None
    if actor.role.value not in transition.roles:
        return None
    if not _guard_holds(transition.guard, request, actor):
        return None
    return transition


def is_permitted(request: Request, actor: User, action: Action | str) -> bool:
    return _authorized_transition(request, actor, action) is not None


def permitted_actions(request: Request, actor: User) -> tuple[Action, ...]:
    """Actions ``actor`` may attempt on ``request`` now, in table order."""
    return tuple(
        Action(t.action)
        for t in REQUEST_WORKFLOW.transitions_from(request.status.value)
        if actor.role.value in t.roles and _guard_holds(t.guard, request, actor)
    )


# =========================================================================
# Approval letter
# =========================================================================


def default_approval_letter(
    request: Request,
    actor: User,
    at: datetime,
    template: str | None = None,
    currency_label: str = "",
) -> str:
    """Letter used when the approver supplies none."""
    total = format_amount(request.total)
    if currency_label:
        total = f"{total} {currency_label}"
    return (template or DEFAULT_LETTER_TEMPLATE).format(
        request_id=request.id,
        created_by_name=request.created_by_name,
        submitted_on=request.created_at.date().isoformat(),
        funder=request.funder,
        program=request.program or "-",
        item_count=len(request.items),
        total=total,
        approver_name=actor.name,
        approver_role=actor.role.value,
        date=at.date().isoformat(),
    )


def letter_template_placeholders(template: str) -> frozenset[str]:
    """Fields referenced by a letter template.

    Automatic (``{}``) and positional (``{0}``) fields are returned as
    ``""`` and ``"0"`` so callers can reject them.
    """
    return frozenset(
        name for _, name, _, _ in string.Formatter().parse(template)
        if name is not None
    )


# =========================================================================
# Transitions
# =========================================================================


@traced_engine("workflow", "1.0", fingerprint_fields=("action",))
def attempt(
    request: Request,
    actor: User,
    action: Action | str,
    payload: ActionPayload | None = None,
    *,
    at: datetime,
    letter_template: str | None = None,
    currency_label: str = "",
) -> TransitionResult:
    """Try ``action`` on ``request`` as ``actor``.

    Returns the next snapshot on success.  ``request`` itself is never
    modified, so the caller can apply or discard the result atomically.
    """
    payload = payload or ActionPayload()
    action_name = action.value if isinstance(action, Action) else str(action)

    transition = _authorized_transition(request, actor, action)
    if transition is None:
        logger.info(
            "transition_rejected",
            extra={
                "request_id": str(request.id),
                "action": action_name,
                "actor_role": actor.role.value,
                "from_state": request.status.value,
                "code": NotPermittedError.code,
            },
        )
        return _rejected(NotPermittedError(action_name))

    try:
        label, changes = _action_effects(
            Action(transition.action), transition, request, actor, payload,
            at=at, letter_template=letter_template, currency_label=currency_label,
        )
    except (MissingPayloadError, InvalidAmountError) as exc:
        logger.info(
            "transition_rejected",
            extra={
                "request_id": str(request.id),
                "action": action_name,
                "actor_role": actor.role.value,
                "from_state": request.status.value,
                "code": exc.code,
            },
        )
        return _rejected(exc)

    entry = HistoryEntry(who=actor.name, role=actor.role.value, action=label, at=at)
    updated = replace(
        request,
        status=RequestStatus(transition.to_state),
        history=request.history + (entry,),
        version=request.version + 1,
        **changes,
    )

    logger.info(
        "transition_applied",
        extra={
            "request_id": str(request.id),
            "action": action_name,
            "actor_role": actor.role.value,
            "from_state": transition.from_state,
            "to_state": transition.to_state,
            "history_length": len(updated.history),
        },
    )
    return _accepted(updated)


def _action_effects(
    action: Action,
    transition: Transition,
    request: Request,
    actor: User,
    payload: ActionPayload,
    *,
    at: datetime,
    letter_template: str | None,
    currency_label: str,
) -> tuple[str, dict]:
    """History label and extra field changes for an authorized action.

    Raises:
        MissingPayloadError / InvalidAmountError on a bad payload.
    """
    if action == Action.PI_APPROVE:
        letter = (payload.approval_letter or "").strip()
        if not letter:
            letter = default_approval_letter(
                request, actor, at, letter_template, currency_label,
            )
        return transition.label, {"approval_letter": letter}

    if action == Action.MARK_PAID:
        raw = payload.paid_amount
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            raise MissingPayloadError(action.value, "paid_amount")
        amount = to_amount(raw)
        return f"{transition.label} {format_amount(amount)}", {"reimbursed": amount}

    if action == Action.REJECT:
        reason = (payload.reason or "").strip()
        if not reason:
            raise MissingPayloadError(action.value, "reason")
        return f"{transition.label}: {reason}", {}

    return transition.label, {}


# =========================================================================
# Attachments and signatures
# =========================================================================


def attach_file(request: Request, actor: User, ref: AttachmentRef) -> TransitionResult:
    """Add an attachment reference (newest first).  Status and history unchanged."""
    if not can_see(request, actor):
        return _rejected(NotPermittedError("attach_file"))
    updated = replace(
        request,
        attachments=(ref,) + request.attachments,
        version=request.version + 1,
    )
    logger.info(
        "attachment_added",
        extra={
            "request_id": str(request.id),
            "ref_id": str(ref.ref_id),
            "attachment_name": ref.name,
        },
    )
    return _accepted(updated)


def signer_key(actor: User) -> str:
    return actor.role.value or actor.username


def sign_request(request: Request, actor: User, artifact: bytes) -> TransitionResult:
    """Store ``artifact`` as the actor's signature, replacing an earlier one."""
    if not can_see(request, actor):
        return _rejected(NotPermittedError("sign"))
    signatures = dict(request.signatures)
    signatures[signer_key(actor)] = artifact
    updated = replace(request, signatures=signatures, version=request.version + 1)
    logger.info(
        "signature_saved",
        extra={
            "request_id": str(request.id),
            "signer": signer_key(actor),
            "artifact_bytes": len(artifact),
        },
    )
    return _accepted(updated)
