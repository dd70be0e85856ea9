"""
Typed Exception Hierarchy for the Reimbursement Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (a UI event handler, an HTTP view, a batch script) must be able to
tell a bad input from a refused action without parsing message strings.
Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Example:
    try:
        app.perform(actor, request_id, Action.MARK_PAID, payload)
    except MissingPayloadError as e:
        show_prompt(e.field_name)
    except NotPermittedError as e:
        api_response(code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ReimbursementError (base)
    |
    +-- ValidationError
    |   +-- EmptyItemsError
    |   +-- MissingPayloadError
    |   +-- InvalidAmountError
    |   +-- UnknownFunderError
    |   +-- InvalidFieldTypeError
    |   +-- InvalidUserError
    |
    +-- NotPermittedError
    |
    +-- AuthFailedError
    |
    +-- NotFoundError
    |   +-- RequestNotFoundError
    |   +-- AttachmentNotFoundError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                 | When Raised
-------------|----------------------|-------------------------------------------
Validation   | EMPTY_ITEMS          | Request submitted with no line items
             | MISSING_PAYLOAD      | Paid amount / rejection reason not given
             | INVALID_AMOUNT       | Negative or unparsable amount
             | UNKNOWN_FUNDER       | Funder not among the configured funders
             | INVALID_FIELD_TYPE   | Template field type not recognised
             | INVALID_USER         | New user record fails directory rules
-------------|----------------------|-------------------------------------------
Permission   | NOT_PERMITTED        | Role, state or fund-source check failed
-------------|----------------------|-------------------------------------------
Auth         | AUTH_FAILED          | Unknown username or wrong password
-------------|----------------------|-------------------------------------------
Lookup       | REQUEST_NOT_FOUND    | No request with the given id
             | ATTACHMENT_NOT_FOUND | No stored payload for the reference
-------------|----------------------|-------------------------------------------
Concurrency  | OPTIMISTIC_LOCK      | Caller acted on a stale request version

NotPermittedError deliberately carries no reason: a caller must not learn
whether the action would have been legal for another role or in another
state.
"""


class ReimbursementError(Exception):
    """
    Base exception for all reimbursement kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "REIMBURSEMENT_ERROR"


# Validation exceptions


class ValidationError(ReimbursementError):
    """Base exception for rejected input. No state change has occurred."""

    code: str = "VALIDATION_ERROR"


class EmptyItemsError(ValidationError):
    """A request must carry at least one line item."""

    code: str = "EMPTY_ITEMS"

    def __init__(self):
        super().__init__("A request requires at least one item")


class MissingPayloadError(ValidationError):
    """An action was attempted without a payload field it requires."""

    code: str = "MISSING_PAYLOAD"

    def __init__(self, action: str, field_name: str):
        self.action = action
        self.field_name = field_name
        super().__init__(f"Action {action} requires {field_name}")


class InvalidAmountError(ValidationError):
    """Amount is negative, non-finite, or not a number."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, value: object, reason: str = "must be a non-negative number"):
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid amount {value!r}: {reason}")


class UnknownFunderError(ValidationError):
    """Funder is not one of the configured funders."""

    code: str = "UNKNOWN_FUNDER"

    def __init__(self, funder: str, allowed: tuple[str, ...]):
        self.funder = funder
        self.allowed = allowed
        super().__init__(
            f"Unknown funder {funder!r}; expected one of {', '.join(allowed)}"
        )


class InvalidFieldTypeError(ValidationError):
    """Template field type is not one of the supported input types."""

    code: str = "INVALID_FIELD_TYPE"

    def __init__(self, field_type: str):
        self.field_type = field_type
        super().__init__(f"Unsupported template field type: {field_type!r}")


class InvalidUserError(ValidationError):
    """A user record could not be registered."""

    code: str = "INVALID_USER"

    def __init__(self, username: str, reason: str):
        self.username = username
        self.reason = reason
        super().__init__(f"Cannot register user {username!r}: {reason}")


# Permission exceptions


class NotPermittedError(ReimbursementError):
    """The actor may not perform this action on this request right now."""

    code: str = "NOT_PERMITTED"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Action not permitted: {action}")


# Authentication exceptions


class AuthFailedError(ReimbursementError):
    """The user directory rejected the supplied credentials."""

    code: str = "AUTH_FAILED"

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Authentication failed for {username!r}")


# Lookup exceptions


class NotFoundError(ReimbursementError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class RequestNotFoundError(NotFoundError):
    """Request with given ID was not found."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request not found: {request_id}")


class AttachmentNotFoundError(NotFoundError):
    """Attachment reference has no stored payload."""

    code: str = "ATTACHMENT_NOT_FOUND"

    def __init__(self, ref_id: str):
        self.ref_id = ref_id
        super().__init__(f"Attachment not found: {ref_id}")


# Concurrency exceptions


class ConcurrencyError(ReimbursementError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """The caller acted on a version of the request that is no longer current."""

    code: str = "OPTIMISTIC_LOCK"

    def __init__(self, entity_type: str, entity_id: str, expected: int, actual: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected
        self.actual_version = actual
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"expected version {expected}, found {actual}"
        )
