"""
Pytest fixtures for the reimbursement test suite.

Provides:
- Structured logging setup and a JSON log capture fixture
- DeterministicClock
- One actor per role, plus a second coordinator scoped to another funder
- Builders for submitted requests and requests advanced along the workflow
- An in-memory SQLite session factory for store tests
- A fully wired ReimbursementApp over that database
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from reimburse_config.loader import parse_templates
from reimburse_config.schema import AppConfig, SeedData
from reimburse_engines.request_builder import build_request
from reimburse_engines.signature import StrokeRasterizer
from reimburse_engines.workflow_engine import attempt
from reimburse_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from reimburse_kernel.domain.clock import DeterministicClock
from reimburse_kernel.domain.reimbursement import (
    Action,
    ActionPayload,
    DraftItem,
    RequestMeta,
    Role,
    User,
    UserRecord,
)
from reimburse_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from reimburse_kernel.services.attachment_store import SqlAttachmentStore
from reimburse_kernel.services.dataset_store import SqlDatasetStore
from reimburse_services.app import ReimbursementApp


FUNDERS = ("FunderA", "FunderB")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture reimburse_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "transition_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("reimburse_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def admin():
    return User(id="u1", role=Role.ADMIN, name="Admin", username="admin")


@pytest.fixture
def pi():
    return User(id="u2", role=Role.PI, name="PI", username="pi")


@pytest.fixture
def facilitator():
    return User(id="u3", role=Role.FACILITATOR, name="Facilitator", username="fac")


@pytest.fixture
def coordinator():
    return User(
        id="u4",
        role=Role.COORDINATOR,
        name="Coord NICU",
        username="coord1",
        fund_sources=frozenset({"FunderA"}),
    )


@pytest.fixture
def other_coordinator():
    return User(
        id="u7",
        role=Role.COORDINATOR,
        name="Coord B",
        username="coord2",
        fund_sources=frozenset({"FunderB"}),
    )


@pytest.fixture
def field_staff():
    return User(id="u5", role=Role.FIELD_STAFF, name="Field Worker A", username="field1")


@pytest.fixture
def other_field_staff():
    return User(id="u8", role=Role.FIELD_STAFF, name="Field Worker B", username="field2")


@pytest.fixture
def finance():
    return User(id="u6", role=Role.FINANCE, name="Finance", username="finance")


@pytest.fixture
def all_actors(admin, pi, facilitator, coordinator, other_coordinator, field_staff, finance):
    return (admin, pi, facilitator, coordinator, other_coordinator, field_staff, finance)


# =============================================================================
# Templates and requests
# =============================================================================


@pytest.fixture
def catalog():
    return parse_templates({
        "Fuel": [
            {"key": "vehicle_no", "label": "Vehicle no", "type": "text"},
            {"key": "litres", "label": "Litres", "type": "number"},
        ],
        "Per diem": [
            {"key": "traveller", "label": "Traveller", "type": "text"},
            {"key": "days", "label": "Days", "type": "number"},
        ],
        "Other": [{"key": "details", "label": "Details", "type": "textarea"}],
    })


@pytest.fixture
def make_request(field_staff, deterministic_clock):
    """Factory for a freshly submitted request."""

    def _make(
        amounts=("150", "50"),
        funder="FunderA",
        program="Maternal health",
        actor=None,
    ):
        drafts = [
            DraftItem(category="Fuel", amount=a, fields={"vehicle_no": "3-A1234", "litres": "10"})
            for a in amounts
        ]
        return build_request(
            drafts,
            RequestMeta(funder=funder, program=program),
            actor or field_staff,
            at=deterministic_clock.now(),
            funders=FUNDERS,
        )

    return _make


@pytest.fixture
def advance(deterministic_clock, facilitator, coordinator, pi, finance):
    """Drive a request forward through the approval chain.

    ``advance(request, steps)`` applies the first ``steps`` of Forward,
    CoordinatorApprove, PIApprove, MarkPaid, each by its proper role.
    """
    chain = (
        (facilitator, Action.FORWARD, None),
        (coordinator, Action.COORDINATOR_APPROVE, None),
        (pi, Action.PI_APPROVE, ActionPayload(approval_letter="Approved.")),
        (finance, Action.MARK_PAID, ActionPayload(paid_amount="200")),
    )

    def _advance(request, steps):
        for actor, action, payload in chain[:steps]:
            request = attempt(
                request, actor, action, payload, at=deterministic_clock.tick(),
            ).unwrap()
        return request

    return _advance


# =============================================================================
# Database and application
# =============================================================================


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database per test."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield get_session_factory()
    drop_tables()
    reset_engine()


@pytest.fixture
def dataset_store(session_factory):
    return SqlDatasetStore(session_factory)


@pytest.fixture
def attachment_store(session_factory, deterministic_clock):
    return SqlAttachmentStore(session_factory, clock=deterministic_clock)


@pytest.fixture
def seed_users():
    return (
        UserRecord(User("u1", Role.ADMIN, "Admin", "admin"), "admin123"),
        UserRecord(User("u2", Role.PI, "PI", "pi"), "pi123"),
        UserRecord(User("u3", Role.FACILITATOR, "Facilitator", "fac"), "fac123"),
        UserRecord(
            User("u4", Role.COORDINATOR, "Coord NICU", "coord1", frozenset({"FunderA"})),
            "coord123",
        ),
        UserRecord(User("u5", Role.FIELD_STAFF, "Field Worker A", "field1"), "field123"),
        UserRecord(User("u6", Role.FINANCE, "Finance", "finance"), "finance123"),
    )


@pytest.fixture
def app_config(seed_users, catalog):
    return AppConfig(
        funders=FUNDERS,
        currency_label="ETB",
        database_url="sqlite:///:memory:",
        seed=SeedData(users=seed_users, templates=catalog),
    )


@pytest.fixture
def app(app_config, dataset_store, attachment_store, deterministic_clock):
    application = ReimbursementApp(
        config=app_config,
        store=dataset_store,
        attachments=attachment_store,
        signature_capture=StrokeRasterizer(),
        clock=deterministic_clock,
    )
    application.seed_if_needed()
    return application


@pytest.fixture
def fuel_draft():
    return [DraftItem(category="Fuel", amount=Decimal("120.50"), fields={"vehicle_no": "X-1"})]
