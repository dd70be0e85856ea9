"""Reimbursement Request Workflow.

State machine for the Facilitator -> Coordinator -> PI -> Finance chain.
This table is the only place that says which role may do what in which
state.
"""

from reimburse_kernel.domain.reimbursement import (
    TERMINAL_STATUSES,
    Action,
    RequestStatus,
    Role,
)
from reimburse_kernel.domain.workflow import Guard, Transition, Workflow
from reimburse_kernel.logging_config import get_logger

logger = get_logger("domain.request_workflow")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

FUND_SOURCE_SCOPE = Guard(
    name="fund_source_scope",
    description="Request funder is one of the actor's fund sources",
)

logger.info(
    "request_workflow_guards_defined",
    extra={"guards": [FUND_SOURCE_SCOPE.name]},
)


# -----------------------------------------------------------------------------
# Forward transitions
# -----------------------------------------------------------------------------

_S = RequestStatus

_FORWARD_TRANSITIONS = (
    Transition(
        _S.PENDING_FACILITATOR.value, _S.PENDING_COORDINATOR.value,
        action=Action.FORWARD.value,
        roles=(Role.FACILITATOR.value,),
        label="Forwarded",
    ),
    Transition(
        _S.PENDING_COORDINATOR.value, _S.PENDING_PI.value,
        action=Action.COORDINATOR_APPROVE.value,
        roles=(Role.COORDINATOR.value,),
        guard=FUND_SOURCE_SCOPE,
        label="Coordinator approved",
    ),
    Transition(
        _S.PENDING_PI.value, _S.APPROVED_FOR_FINANCE.value,
        action=Action.PI_APPROVE.value,
        roles=(Role.PI.value, Role.ADMIN.value),
        label="PI approved",
    ),
    Transition(
        _S.APPROVED_FOR_FINANCE.value, _S.PAID.value,
        action=Action.MARK_PAID.value,
        roles=(Role.FINANCE.value,),
        label="Finance paid",
    ),
)


def _reject_transitions(forward: tuple[Transition, ...]) -> tuple[Transition, ...]:
    """One reject per non-terminal state, owned by that state's forward roles.

    The reject inherits the forward transition's guard, so a coordinator
    can only reject requests for funders they cover.
    """
    return tuple(
        Transition(
            t.from_state, _S.REJECTED.value,
            action=Action.REJECT.value,
            roles=t.roles,
            guard=t.guard,
            label="Rejected",
        )
        for t in forward
    )


REQUEST_WORKFLOW = Workflow(
    name="reimbursement_request",
    description="Reimbursement request approval chain",
    initial_state=_S.PENDING_FACILITATOR.value,
    states=tuple(s.value for s in RequestStatus),
    transitions=_FORWARD_TRANSITIONS + _reject_transitions(_FORWARD_TRANSITIONS),
    terminal_states=tuple(s.value for s in RequestStatus if s in TERMINAL_STATUSES),
)

# Submit creates a request rather than moving one between states.
SUBMIT_ROLES: tuple[str, ...] = (Role.FIELD_STAFF.value,)
SUBMIT_LABEL = "Submitted"

logger.info(
    "request_workflow_registered",
    extra={
        "workflow_name": REQUEST_WORKFLOW.name,
        "state_count": len(REQUEST_WORKFLOW.states),
        "transition_count": len(REQUEST_WORKFLOW.transitions),
        "initial_state": REQUEST_WORKFLOW.initial_state,
    },
)
