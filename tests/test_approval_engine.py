"""
Approval Engine Tests
Chain materialization and approve/reject transitions
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from tests.test_auth import TestingSessionLocal, test_db, acme
from expenseflow.config.database import unit_of_work
from expenseflow.config.settings import settings
from expenseflow.models.approval_rule import ApprovalRule, ApprovalStep, RuleType
from expenseflow.models.expense import Expense, ExpenseStatus
from expenseflow.models.expense_approval import ExpenseApproval, ApprovalStatus
from expenseflow.models.profile import Profile
from expenseflow.schemas.approval_rule import ApprovalRuleUpdate, ApprovalStepDraft
from expenseflow.schemas.expense import ExpenseCreate
from expenseflow.services.approval_engine import approval_engine
from expenseflow.services.approval_rule_service import approval_rule_service
from expenseflow.services.auth_service import auth_service
from expenseflow.services.expense_service import expense_service
from expenseflow.services.rule_evaluator import RuleOutcome
from expenseflow.utils.exceptions import (
    AlreadyActionedError,
    ConcurrentTransitionError,
    ExternalServiceError,
    NotFoundError,
)


@pytest.fixture
def db(test_db):
    session = TestingSessionLocal()
    yield session
    session.close()


def ctx(db, profile_id):
    return auth_service.context_for(db.query(Profile).filter(Profile.id == profile_id).first())


def configure(db, acme, steps, **rule):
    payload = ApprovalRuleUpdate(
        steps=[ApprovalStepDraft(approver_id=a, step_order=i + 1) for i, a in enumerate(steps)],
        **rule
    )
    return approval_rule_service.save_configuration(db, ctx(db, acme.admin_id), payload)


def submit(db, acme, amount=100.0, currency="USD"):
    data = ExpenseCreate(
        amount=amount,
        currency=currency,
        category="travel",
        description="Client visit taxi",
        expense_date=date(2026, 10, 1)
    )
    return expense_service.submit_expense(db, ctx(db, acme.employee_id), data)


def statuses(db, expense_id):
    db.expire_all()
    return [
        (a.step_order, a.status)
        for a in db.query(ExpenseApproval).filter(
            ExpenseApproval.expense_id == expense_id
        ).order_by(ExpenseApproval.step_order)
    ]


def pending_count(db, expense_id):
    return sum(1 for _, s in statuses(db, expense_id) if s == ApprovalStatus.PENDING)


class TestBuildChain:
    """Pure chain construction from the rule template"""

    def template(self, is_manager_approver):
        rule = ApprovalRule(is_manager_approver=is_manager_approver)
        rule.steps = [
            ApprovalStep(approver_id=21, step_order=2),
            ApprovalStep(approver_id=20, step_order=1),
        ]
        return rule

    def test_no_rule_gives_empty_chain(self):
        assert approval_engine.build_chain(None, manager_id=5) == []

    def test_configured_steps_only(self):
        chain = approval_engine.build_chain(self.template(False), manager_id=5)
        assert [(a.approver_id, a.step_order, a.status) for a in chain] == [
            (20, 1, ApprovalStatus.PENDING),
            (21, 2, ApprovalStatus.WAITING),
        ]

    def test_manager_step_first(self):
        chain = approval_engine.build_chain(self.template(True), manager_id=5)
        assert [(a.approver_id, a.step_order, a.status) for a in chain] == [
            (5, 0, ApprovalStatus.PENDING),
            (20, 2, ApprovalStatus.WAITING),
            (21, 3, ApprovalStatus.WAITING),
        ]

    def test_manager_step_skipped_without_manager(self):
        chain = approval_engine.build_chain(self.template(True), manager_id=None)
        assert [(a.approver_id, a.step_order, a.status) for a in chain] == [
            (20, 1, ApprovalStatus.PENDING),
            (21, 2, ApprovalStatus.WAITING),
        ]

    def test_manager_only(self):
        rule = ApprovalRule(is_manager_approver=True)
        chain = approval_engine.build_chain(rule, manager_id=5)
        assert [(a.approver_id, a.step_order, a.status) for a in chain] == [
            (5, 0, ApprovalStatus.PENDING),
        ]


class TestAcmeScenario:
    """Two configured steps, sequential rule, no manager step"""

    def test_sequential_chain_runs_to_approval(self, db, acme):
        configure(db, acme, [acme.finance_id, acme.cfo_id])
        expense = submit(db, acme, amount=100.0, currency="USD")
        expense_id = expense.id

        assert expense.status == ExpenseStatus.PENDING
        assert statuses(db, expense_id) == [
            (1, ApprovalStatus.PENDING),
            (2, ApprovalStatus.WAITING),
        ]

        result = approval_engine.approve(db, ctx(db, acme.finance_id), expense_id, "Looks fine")
        assert result.activated_step.step_order == 2
        assert result.outcome is None
        assert result.expense.status == ExpenseStatus.PENDING
        assert statuses(db, expense_id) == [
            (1, ApprovalStatus.APPROVED),
            (2, ApprovalStatus.PENDING),
        ]

        result = approval_engine.approve(db, ctx(db, acme.cfo_id), expense_id)
        assert result.activated_step is None
        assert result.outcome == RuleOutcome.APPROVED
        assert statuses(db, expense_id) == [
            (1, ApprovalStatus.APPROVED),
            (2, ApprovalStatus.APPROVED),
        ]

        expense = db.query(Expense).filter(Expense.id == expense_id).first()
        assert expense.status == ExpenseStatus.APPROVED
        assert expense.finalized_at is not None
        assert expense.is_stalled is False

    def test_comments_and_action_date_recorded(self, db, acme):
        configure(db, acme, [acme.finance_id])
        expense_id = submit(db, acme).id

        result = approval_engine.approve(db, ctx(db, acme.finance_id), expense_id, "OK by finance")
        assert result.approval.comments == "OK by finance"
        assert result.approval.action_date is not None


class TestMaterialization:

    def test_manager_step_inserted_before_configured_steps(self, db, acme):
        configure(db, acme, [acme.finance_id], is_manager_approver=True)
        expense_id = submit(db, acme).id

        chain = db.query(ExpenseApproval).filter(
            ExpenseApproval.expense_id == expense_id
        ).order_by(ExpenseApproval.step_order).all()
        assert [(a.approver_id, a.step_order, a.status) for a in chain] == [
            (acme.lead_id, 0, ApprovalStatus.PENDING),
            (acme.finance_id, 2, ApprovalStatus.WAITING),
        ]

    def test_no_rule_leaves_expense_stalled(self, db, acme):
        expense = submit(db, acme)
        assert expense.status == ExpenseStatus.PENDING
        assert expense.is_stalled is True
        assert statuses(db, expense.id) == []

    def test_no_rule_auto_approves_when_enabled(self, db, acme):
        with patch.object(settings, "AUTO_APPROVE_WITHOUT_RULE", True):
            expense = submit(db, acme)
        assert expense.status == ExpenseStatus.APPROVED
        assert expense.finalized_at is not None


class TestTransitions:

    def test_reject_touches_only_own_record(self, db, acme):
        configure(db, acme, [acme.finance_id, acme.cfo_id], is_manager_approver=True)
        expense_id = submit(db, acme).id

        approval_engine.approve(db, ctx(db, acme.lead_id), expense_id)
        result = approval_engine.reject(db, ctx(db, acme.finance_id), expense_id, "Missing receipt")

        assert result.expense.status == ExpenseStatus.REJECTED
        assert result.approval.comments == "Missing receipt"
        assert statuses(db, expense_id) == [
            (0, ApprovalStatus.APPROVED),
            (2, ApprovalStatus.REJECTED),
            (3, ApprovalStatus.WAITING),
        ]

    def test_at_most_one_pending_record(self, db, acme):
        configure(db, acme, [acme.finance_id, acme.cfo_id], is_manager_approver=True)
        expense_id = submit(db, acme).id
        assert pending_count(db, expense_id) == 1

        for approver_id in (acme.lead_id, acme.finance_id):
            approval_engine.approve(db, ctx(db, approver_id), expense_id)
            assert pending_count(db, expense_id) == 1

        approval_engine.approve(db, ctx(db, acme.cfo_id), expense_id)
        assert pending_count(db, expense_id) == 0

    def test_waiting_approver_cannot_act(self, db, acme):
        configure(db, acme, [acme.finance_id, acme.cfo_id])
        expense_id = submit(db, acme).id

        with pytest.raises(AlreadyActionedError):
            approval_engine.approve(db, ctx(db, acme.cfo_id), expense_id)

        assert statuses(db, expense_id) == [
            (1, ApprovalStatus.PENDING),
            (2, ApprovalStatus.WAITING),
        ]

    def test_approver_cannot_act_twice(self, db, acme):
        configure(db, acme, [acme.finance_id, acme.cfo_id])
        expense_id = submit(db, acme).id
        approval_engine.approve(db, ctx(db, acme.finance_id), expense_id)

        with pytest.raises(AlreadyActionedError):
            approval_engine.approve(db, ctx(db, acme.finance_id), expense_id)

    def test_no_action_after_rejection(self, db, acme):
        configure(db, acme, [acme.finance_id, acme.cfo_id])
        expense_id = submit(db, acme).id
        approval_engine.reject(db, ctx(db, acme.finance_id), expense_id)

        with pytest.raises(AlreadyActionedError):
            approval_engine.approve(db, ctx(db, acme.cfo_id), expense_id)

    def test_caller_without_step(self, db, acme):
        configure(db, acme, [acme.finance_id])
        expense_id = submit(db, acme).id

        with pytest.raises(NotFoundError):
            approval_engine.approve(db, ctx(db, acme.cfo_id), expense_id)

    def test_unknown_expense(self, db, acme):
        with pytest.raises(NotFoundError):
            approval_engine.reject(db, ctx(db, acme.finance_id), 9999)

    def test_version_bumps_on_every_transition(self, db, acme):
        configure(db, acme, [acme.finance_id, acme.cfo_id])
        expense = submit(db, acme)
        start = expense.version

        approval_engine.approve(db, ctx(db, acme.finance_id), expense.id)
        db.expire_all()
        assert db.query(Expense).filter(Expense.id == expense.id).first().version == start + 1


class TestFinalRules:

    def test_specific_approver_not_in_chain_stalls(self, db, acme):
        configure(
            db, acme, [acme.finance_id],
            rule_type=RuleType.SPECIFIC_APPROVER,
            specific_approver_id=acme.cfo_id
        )
        expense_id = submit(db, acme).id

        result = approval_engine.approve(db, ctx(db, acme.finance_id), expense_id)
        assert result.outcome == RuleOutcome.STALLED

        expense = db.query(Expense).filter(Expense.id == expense_id).first()
        assert expense.status == ExpenseStatus.PENDING
        assert expense.is_stalled is True
        assert pending_count(db, expense_id) == 0

        with pytest.raises(AlreadyActionedError):
            approval_engine.approve(db, ctx(db, acme.finance_id), expense_id)

    def test_specific_approver_acting_last(self, db, acme):
        configure(
            db, acme, [acme.finance_id, acme.cfo_id],
            rule_type=RuleType.SPECIFIC_APPROVER,
            specific_approver_id=acme.cfo_id
        )
        expense_id = submit(db, acme).id

        approval_engine.approve(db, ctx(db, acme.finance_id), expense_id)
        result = approval_engine.approve(db, ctx(db, acme.cfo_id), expense_id)

        assert result.outcome == RuleOutcome.APPROVED
        assert result.expense.status == ExpenseStatus.APPROVED

    def test_percentage_counts_final_approval_once(self, db, acme):
        configure(
            db, acme, [acme.finance_id, acme.cfo_id],
            rule_type=RuleType.PERCENTAGE,
            percentage_required=100
        )
        expense_id = submit(db, acme).id

        approval_engine.approve(db, ctx(db, acme.finance_id), expense_id)
        result = approval_engine.approve(db, ctx(db, acme.cfo_id), expense_id)

        assert result.outcome == RuleOutcome.APPROVED
        assert result.expense.status == ExpenseStatus.APPROVED


class TestUnitOfWork:

    def test_commits_on_success(self):
        session = MagicMock()
        with unit_of_work(session):
            pass
        session.commit.assert_called_once()
        session.rollback.assert_not_called()

    def test_stale_version_becomes_conflict(self):
        session = MagicMock()
        with pytest.raises(ConcurrentTransitionError):
            with unit_of_work(session):
                raise StaleDataError("expected to update 1 row(s); 0 were matched")
        session.rollback.assert_called_once()
        session.commit.assert_not_called()

    def test_other_errors_roll_back_and_propagate(self):
        session = MagicMock()
        with pytest.raises(NotFoundError):
            with unit_of_work(session):
                raise NotFoundError("Expense not found")
        session.rollback.assert_called_once()

    def test_stale_version_on_commit(self):
        session = MagicMock()
        session.commit.side_effect = StaleDataError("expected to update 1 row(s); 0 were matched")
        with pytest.raises(ConcurrentTransitionError):
            with unit_of_work(session):
                pass
        session.rollback.assert_called_once()

    def test_data_store_failure_becomes_external_error(self):
        session = MagicMock()
        session.commit.side_effect = IntegrityError("INSERT INTO profiles", {}, Exception("UNIQUE constraint failed"))
        with pytest.raises(ExternalServiceError):
            with unit_of_work(session):
                pass
        session.rollback.assert_called_once()


class TestDataStoreFailures:

    def test_failed_commit_during_approve(self, db, acme):
        configure(db, acme, [acme.finance_id, acme.cfo_id])
        expense_id = submit(db, acme).id
        finance = ctx(db, acme.finance_id)

        failure = OperationalError("COMMIT", {}, Exception("disk I/O error"))
        with patch.object(db, "commit", side_effect=failure):
            with pytest.raises(ExternalServiceError):
                approval_engine.approve(db, finance, expense_id)

        # Rolled back: the chain is untouched
        assert statuses(db, expense_id) == [
            (1, ApprovalStatus.PENDING),
            (2, ApprovalStatus.WAITING),
        ]
