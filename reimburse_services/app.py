"""
reimburse_services.app -- Reimbursement application service.

Responsibility:
    Owns the current ``Dataset`` snapshot and is the single place that
    mutates it.  Each command loads the affected request from the snapshot,
    delegates the decision to a pure engine, swaps in the new snapshot and
    saves it through the ``PersistentStore``.  Rejections are raised as the
    engine's typed exception; the snapshot is left untouched.

Architecture position:
    Services layer.  May import from reimburse_engines/ (pure engines),
    reimburse_kernel/ (domain, services) and reimburse_config/.

Invariants enforced:
    - Every accepted mutation is followed by exactly one ``save_all``.
    - A rejected command changes neither the in-memory snapshot nor the
      store.
    - ``perform(..., expected_version=n)`` fails with OptimisticLockError
      when the stored request has moved on.
    - Template and user administration is Admin-only.

Failure modes:
    - RequestNotFoundError for an unknown request id.
    - NotPermittedError, MissingPayloadError, InvalidAmountError from the
      workflow engine.
    - Builder, directory and store errors propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from uuid import UUID, uuid4

from reimburse_config.schema import AppConfig
from reimburse_engines.request_builder import build_request
from reimburse_engines.visibility import can_see, filter_requests, visible_requests
from reimburse_engines.workflow_engine import (
    TransitionResult,
    attach_file,
    attempt,
    permitted_actions,
    sign_request,
)
from reimburse_kernel.domain.clock import Clock, SystemClock
from reimburse_kernel.domain.collaborators import (
    AttachmentStore,
    PersistentStore,
    SignatureCapture,
    Stroke,
    UserDirectory,
)
from reimburse_kernel.domain.dataset import Dataset
from reimburse_kernel.domain.reimbursement import (
    Action,
    ActionPayload,
    DraftItem,
    Request,
    RequestMeta,
    RequestStatus,
    Role,
    User,
    UserRecord,
)
from reimburse_kernel.domain.templates import FieldDescriptor, FieldType, TemplateCatalog
from reimburse_kernel.exceptions import (
    AttachmentNotFoundError,
    InvalidUserError,
    NotPermittedError,
    OptimisticLockError,
    RequestNotFoundError,
)
from reimburse_kernel.logging_config import LogContext, get_logger
from reimburse_kernel.services.user_directory import InMemoryUserDirectory

logger = get_logger("services.app")

DirectoryFactory = Callable[[Iterable[UserRecord]], UserDirectory]


class ReimbursementApp:
    """Coordinates engines, collaborators and the dataset snapshot."""

    def __init__(
        self,
        config: AppConfig,
        store: PersistentStore,
        attachments: AttachmentStore,
        signature_capture: SignatureCapture,
        clock: Clock | None = None,
        directory_factory: DirectoryFactory = InMemoryUserDirectory,
    ):
        self._config = config
        self._store = store
        self._attachments = attachments
        self._signature_capture = signature_capture
        self._clock = clock or SystemClock()
        self._directory_factory = directory_factory
        self._dataset = store.load_all()

    @property
    def dataset(self) -> Dataset:
        return self._dataset

    @property
    def templates(self) -> TemplateCatalog:
        return self._dataset.templates

    @property
    def funders(self) -> tuple[str, ...]:
        return self._config.funders

    # ------------------------------------------------------------------
    # Snapshot handling
    # ------------------------------------------------------------------

    def _commit(self, dataset: Dataset) -> None:
        self._store.save_all(dataset)
        self._dataset = dataset

    def _request(self, request_id: UUID | str) -> Request:
        try:
            rid = request_id if isinstance(request_id, UUID) else UUID(str(request_id))
        except ValueError:
            raise RequestNotFoundError(str(request_id)) from None
        return self._dataset.find_request(rid)

    def _apply(self, result: TransitionResult) -> Request:
        request = result.unwrap()
        self._commit(self._dataset.with_request(request))
        return request

    def reload(self) -> Dataset:
        """Replace the in-memory snapshot with what the store holds."""
        self._dataset = self._store.load_all()
        return self._dataset

    # ------------------------------------------------------------------
    # Seeding and authentication
    # ------------------------------------------------------------------

    def seed_if_needed(self) -> bool:
        """Install the configured demo users and templates once.

        Returns True when seeding happened.
        """
        if self._dataset.seeded:
            return False
        seed = self._config.seed
        dataset = Dataset(
            users=seed.users,
            templates=seed.templates,
            requests=self._dataset.requests,
            seeded=True,
        )
        self._commit(dataset)
        logger.info(
            "dataset_seeded",
            extra={
                "user_count": len(seed.users),
                "category_count": len(seed.templates.entries),
            },
        )
        return True

    def directory(self) -> UserDirectory:
        return self._directory_factory(self._dataset.users)

    def login(self, username: str, password: str) -> User:
        return self.directory().authenticate(username, password)

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def submit_request(
        self,
        actor: User,
        draft_items: Sequence[DraftItem],
        meta: RequestMeta,
    ) -> Request:
        with LogContext.bind(actor_id=actor.id):
            request = build_request(
                draft_items,
                meta,
                actor,
                at=self._clock.now(),
                catalog=self._dataset.templates,
                funders=self._config.funders,
            )
            self._commit(self._dataset.add_request(request))
            logger.info(
                "request_submitted",
                extra={"request_id": str(request.id), "total": request.total},
            )
            return request

    def perform(
        self,
        actor: User,
        request_id: UUID | str,
        action: Action | str,
        payload: ActionPayload | None = None,
        expected_version: int | None = None,
    ) -> Request:
        """Apply a workflow action and return the updated request.

        Raises:
            RequestNotFoundError: unknown ``request_id``.
            OptimisticLockError: ``expected_version`` given and stale.
            NotPermittedError / MissingPayloadError / InvalidAmountError:
                the engine rejected the action.
        """
        request = self._request(request_id)
        with LogContext.bind(actor_id=actor.id, request_id=str(request.id)):
            if expected_version is not None and expected_version != request.version:
                logger.info(
                    "optimistic_lock_conflict",
                    extra={
                        "expected_version": expected_version,
                        "actual_version": request.version,
                    },
                )
                raise OptimisticLockError(
                    "Request", str(request.id), expected_version, request.version,
                )
            result = attempt(
                request,
                actor,
                action,
                payload,
                at=self._clock.now(),
                letter_template=self._config.approval_letter_template,
                currency_label=self._config.currency_label,
            )
            return self._apply(result)

    def visible(
        self,
        actor: User,
        funder: str | None = None,
        status: RequestStatus | str | None = None,
        program: str | None = None,
    ) -> tuple[Request, ...]:
        """Requests ``actor`` may see, newest first, narrowed by the filters."""
        return filter_requests(
            visible_requests(self._dataset.requests, actor),
            funder=funder,
            status=status,
            program=program,
        )

    def permitted_actions(self, actor: User, request_id: UUID | str) -> tuple[Action, ...]:
        return permitted_actions(self._request(request_id), actor)

    # ------------------------------------------------------------------
    # Attachments and signatures
    # ------------------------------------------------------------------

    def attach(
        self,
        actor: User,
        request_id: UUID | str,
        name: str,
        payload: bytes,
        content_type: str = "application/octet-stream",
    ) -> Request:
        request = self._request(request_id)
        with LogContext.bind(actor_id=actor.id, request_id=str(request.id)):
            if not can_see(request, actor):
                raise NotPermittedError("attach_file")
            ref = self._attachments.put(name, payload, content_type)
            return self._apply(attach_file(request, actor, ref))

    def read_attachment(
        self,
        actor: User,
        request_id: UUID | str,
        ref_id: UUID | str,
    ) -> bytes:
        request = self._request(request_id)
        if not can_see(request, actor):
            raise NotPermittedError("read_attachment")
        for ref in request.attachments:
            if str(ref.ref_id) == str(ref_id):
                return self._attachments.get(ref)
        raise AttachmentNotFoundError(str(ref_id))

    def sign(self, actor: User, request_id: UUID | str, strokes: Sequence[Stroke]) -> Request:
        request = self._request(request_id)
        with LogContext.bind(actor_id=actor.id, request_id=str(request.id)):
            if not can_see(request, actor):
                raise NotPermittedError("sign")
            artifact = self._signature_capture.capture(strokes)
            return self._apply(sign_request(request, actor, artifact))

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def add_template_field(
        self,
        actor: User,
        category: str,
        key: str,
        label: str,
        type: FieldType | str = FieldType.TEXT,
    ) -> TemplateCatalog:
        if actor.role != Role.ADMIN:
            raise NotPermittedError("add_template_field")
        descriptor = FieldDescriptor(key=key.strip(), label=label.strip() or key.strip(), type=type)
        catalog = self._dataset.templates.add_field(category.strip(), descriptor)
        self._commit(self._dataset.with_templates(catalog))
        logger.info(
            "template_field_added",
            extra={
                "actor_id": actor.id,
                "category": category,
                "key": descriptor.key,
                "field_type": descriptor.type.value,
            },
        )
        return catalog

    def create_user(
        self,
        actor: User,
        *,
        username: str,
        role: Role | str,
        name: str = "",
        password: str = "",
        email: str = "",
        phone: str = "",
        national_id: str = "",
        driver_license: str = "",
        passport: str = "",
        fund_sources: Iterable[str] | str = (),
    ) -> UserRecord:
        """Register a new user (Admin only).

        ``fund_sources`` may be given as a comma-separated string, the way
        the user form collects it.

        Raises:
            NotPermittedError: actor is not an Admin.
            InvalidUserError: duplicate username or no identity document.
        """
        if actor.role != Role.ADMIN:
            raise NotPermittedError("create_user")
        try:
            role = Role(role)
        except ValueError:
            raise InvalidUserError(username, f"unknown role {role!r}") from None
        if isinstance(fund_sources, str):
            fund_sources = fund_sources.split(",")
        record = UserRecord(
            user=User(
                id=f"u{uuid4().hex[:8]}",
                role=role,
                name=name,
                username=username,
                fund_sources=frozenset(fund_sources),
            ),
            password=password,
            email=email,
            phone=phone,
            national_id=national_id,
            driver_license=driver_license,
            passport=passport,
        )
        stored = self.directory().register(record)
        self._commit(self._dataset.add_user(stored))
        return stored
