"""
Unit of work boundaries: commit, rollback and persistence failure mapping.
"""

from dataclasses import replace
from decimal import Decimal

import pytest
from sqlalchemy import select, text

from dairy_config.schema import DatabaseConfig
from dairy_kernel.db.engine import drop_tables, reset_engine, session_scope
from dairy_kernel.exceptions import (
    AtomicCommitFailureError,
    FeedNotFoundError,
    InsufficientStockError,
)
from dairy_kernel.models import Feed
from dairy_services import LedgerOperations, read_session, unit_of_work


def _feed(name="Dairy Meal", quantity="100"):
    return Feed(name=name, type="dairy_meal", quantity_on_hand=Decimal(quantity))


class TestUnitOfWork:
    def test_commits_on_success(self, session_factory, captured_logs):
        with unit_of_work(session_factory, "create_feed") as session:
            session.add(_feed())

        with read_session(session_factory) as session:
            assert len(session.execute(select(Feed)).scalars().all()) == 1
        assert any(r["message"] == "transaction_committed" for r in captured_logs())

    def test_domain_error_rolls_back_and_propagates(self, session_factory, captured_logs):
        with pytest.raises(FeedNotFoundError):
            with unit_of_work(session_factory, "create_feed") as session:
                session.add(_feed())
                session.flush()
                raise FeedNotFoundError("x")

        with read_session(session_factory) as session:
            assert session.execute(select(Feed)).scalars().all() == []
        rolled_back = [r for r in captured_logs() if r["message"] == "transaction_rolled_back"]
        assert rolled_back[0]["reason"] == "FEED_NOT_FOUND"
        assert rolled_back[0]["operation"] == "create_feed"

    def test_constraint_violation_becomes_atomic_commit_failure(self, session_factory):
        with pytest.raises(AtomicCommitFailureError) as exc_info:
            with unit_of_work(session_factory, "create_feed") as session:
                session.add(_feed(name="Good"))
                session.add(_feed(name="Bad", quantity="-5"))

        assert exc_info.value.operation == "create_feed"
        assert exc_info.value.retryable
        with read_session(session_factory) as session:
            assert session.execute(select(Feed)).scalars().all() == []

    def test_version_conflict_becomes_atomic_commit_failure(self, session_factory):
        with unit_of_work(session_factory, "create_feed") as session:
            feed = _feed()
            session.add(feed)
        feed_id = feed.id

        with pytest.raises(AtomicCommitFailureError, match="StaleDataError"):
            with unit_of_work(session_factory, "edit_feed") as session:
                row = session.get(Feed, feed_id)
                # A concurrent writer bumps the version behind the ORM's back
                session.execute(
                    text("UPDATE feeds SET version = version + 1 WHERE id = :id"),
                    {"id": str(feed_id)},
                )
                row.quantity_on_hand = Decimal("90")

        with read_session(session_factory) as session:
            assert session.get(Feed, feed_id).quantity_on_hand == Decimal("100")

    def test_log_context_is_bound_for_the_operation(self, session_factory, captured_logs):
        with unit_of_work(session_factory, "settle_farmer", farmer_id="F-001"):
            pass

        [committed] = [r for r in captured_logs() if r["message"] == "transaction_committed"]
        assert committed["operation"] == "settle_farmer"
        assert committed["farmer_id"] == "F-001"
        assert "correlation_id" in committed


def test_operation_failure_leaves_no_partial_state(ops, create_feed, submit_request):
    feed = create_feed(quantity=10)
    request = submit_request(quantity=30)

    with pytest.raises(InsufficientStockError):
        ops.transition_request(request.id, "approved")

    assert ops.get_feed(feed.id).reserved_quantity == Decimal("0")
    assert ops.get_request(request.id).status.value == "pending"


class TestSessionScope:
    def test_commits_through_engine_session(self, engine, session_factory):
        with session_scope() as session:
            session.add(_feed(name="Maize Germ"))

        with read_session(session_factory) as session:
            [feed] = session.execute(select(Feed)).scalars().all()
            assert feed.name == "Maize Germ"

    def test_rolls_back_and_reraises(self, engine, session_factory):
        with pytest.raises(FeedNotFoundError):
            with session_scope() as session:
                session.add(_feed())
                session.flush()
                raise FeedNotFoundError("x")

        with read_session(session_factory) as session:
            assert session.execute(select(Feed)).scalars().all() == []


class TestFromConfig:
    def test_builds_engine_and_schema_from_database_config(self, ledger_config, deterministic_clock):
        config = replace(ledger_config, database=DatabaseConfig(url="sqlite://"))
        try:
            ops = LedgerOperations.from_config(config, deterministic_clock)
            feed = ops.upsert_feed(
                {"name": "Dairy Meal", "type": "dairy_meal", "quantity_on_hand": 10, "price_per_unit": 45}
            )
            assert ops.get_feed(feed.id).name == "Dairy Meal"
            assert ops.config is config
        finally:
            drop_tables()
            reset_engine()
