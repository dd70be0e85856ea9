"""
reimburse_engines.request_builder -- Assemble a submitted request.

Responsibility:
    Turn the items and form values a field staff member entered into one
    submitted ``Request``: fresh identity, initial status, a single
    "Submitted" history entry, nothing attached, nothing signed, nothing
    reimbursed.

Architecture position:
    Engines -- pure decision layer.  The submission time is passed in.

Invariants enforced:
    - Only the roles allowed to submit may build a request.
    - At least one item, every amount a non-negative number.
    - Funder is one of the configured funders (when a list is given).

Tolerance:
    Item field values are stored as entered.  Keys the category's current
    template does not declare are kept (and logged); the template is not a
    live schema for existing or new items.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID, uuid4

from reimburse_engines.tracer import traced_engine
from reimburse_kernel.domain.reimbursement import (
    Action,
    DraftItem,
    HistoryEntry,
    Item,
    Request,
    RequestMeta,
    RequestStatus,
    User,
    to_amount,
)
from reimburse_kernel.domain.request_workflow import (
    REQUEST_WORKFLOW,
    SUBMIT_LABEL,
    SUBMIT_ROLES,
)
from reimburse_kernel.domain.templates import TemplateCatalog
from reimburse_kernel.exceptions import (
    EmptyItemsError,
    NotPermittedError,
    UnknownFunderError,
)
from reimburse_kernel.logging_config import get_logger

logger = get_logger("engines.request_builder")


def _build_item(draft: DraftItem, catalog: TemplateCatalog | None) -> Item:
    fields = {
        str(k): "" if v is None else str(v)
        for k, v in (draft.fields or {}).items()
    }
    if catalog is not None:
        extra = catalog.unknown_keys(draft.category, set(fields))
        if extra:
            logger.debug(
                "item_fields_outside_template",
                extra={"category": draft.category, "keys": sorted(extra)},
            )
    return Item(
        id=uuid4(),
        category=draft.category,
        amount=to_amount(draft.amount),
        fields=fields,
    )


@traced_engine("request_builder", "1.0")
def build_request(
    draft_items: Sequence[DraftItem],
    meta: RequestMeta,
    actor: User,
    *,
    at: datetime,
    catalog: TemplateCatalog | None = None,
    funders: Sequence[str] | None = None,
    request_id: UUID | None = None,
) -> Request:
    """Build a submitted request.

    Raises:
        NotPermittedError: actor's role may not submit.
        EmptyItemsError: no items.
        InvalidAmountError: an item amount is negative or not a number.
        UnknownFunderError: ``funders`` given and ``meta.funder`` not in it.
    """
    if actor.role.value not in SUBMIT_ROLES:
        raise NotPermittedError(Action.SUBMIT.value)
    if not draft_items:
        raise EmptyItemsError()
    if funders is not None and meta.funder not in funders:
        raise UnknownFunderError(meta.funder, tuple(funders))

    items = tuple(_build_item(d, catalog) for d in draft_items)
    request = Request(
        id=request_id or uuid4(),
        created_at=at,
        created_by=actor.id,
        created_by_name=actor.name,
        items=items,
        funder=meta.funder,
        program=meta.program,
        notes=meta.notes,
        status=RequestStatus(REQUEST_WORKFLOW.initial_state),
        history=(
            HistoryEntry(who=actor.name, role=actor.role.value, action=SUBMIT_LABEL, at=at),
        ),
    )

    logger.info(
        "request_built",
        extra={
            "request_id": str(request.id),
            "created_by": actor.id,
            "item_count": len(items),
            "total": request.total,
            "funder": request.funder,
        },
    )
    return request
