import logging
import threading
import time
from decimal import Decimal

import pytest
from django.db import OperationalError, connections

from contracts.models import Contract
from escrow import state_machine
from escrow.models import EscrowTransaction
from payments.events import payment_event
from payments.exceptions import (
    ContractAlreadyExists,
    InsufficientPendingFunds,
    InvalidAmount,
    InvalidTransition,
    PaymentsDisabled,
    Unauthorized,
)
from payments.services import PaymentEngine
from wallet.ledger import WalletLedger
from wallet.models import Wallet, WalletTransaction

pytestmark = pytest.mark.django_db


def wallet_of(user):
    return Wallet.objects.get(user=user)


def run_to_work_completed(engine, escrow, client_user, freelancer):
    engine.confirm_payment(escrow.pk, client_user)
    engine.mark_work_completed(escrow.pk, freelancer)


class TestAcceptProposal:
    def test_creates_contract_and_escrow(self, engine, client_user, freelancer):
        contract = engine.accept_proposal(
            project_id=7, client=client_user, freelancer=freelancer, amount='250.00', proposal_id=3,
        )
        assert contract.status == Contract.STATUS_ACTIVE
        assert contract.escrow.status == EscrowTransaction.PENDING_PAYMENT
        assert contract.escrow.amount == Decimal('250.00')
        assert contract.escrow.project_id == 7

    def test_same_proposal_twice(self, engine, contract, client_user, freelancer):
        with pytest.raises(ContractAlreadyExists):
            engine.accept_proposal(
                project_id=99, client=client_user, freelancer=freelancer, amount='100.00', proposal_id=10,
            )
        assert Contract.objects.count() == 1

    def test_one_open_contract_per_project_and_freelancer(self, engine, contract, client_user, freelancer):
        with pytest.raises(ContractAlreadyExists):
            engine.accept_proposal(project_id=1, client=client_user, freelancer=freelancer, amount='100.00')
        assert Contract.objects.count() == 1

    def test_cancelled_contract_frees_the_pair(self, engine, contract, escrow, client_user, freelancer, operator):
        engine.confirm_payment(escrow.pk, client_user)
        engine.dispute(escrow.pk, client_user)
        engine.refund(escrow.pk, operator)

        again = engine.accept_proposal(project_id=1, client=client_user, freelancer=freelancer, amount='80.00')
        assert again.pk != contract.pk

    def test_rejects_bad_amount(self, engine, client_user, freelancer):
        with pytest.raises(InvalidAmount):
            engine.accept_proposal(project_id=2, client=client_user, freelancer=freelancer, amount='-5')

    def test_oversized_amount_is_not_stored(self, engine, client_user, freelancer):
        with pytest.raises(InvalidAmount):
            engine.accept_proposal(
                project_id=2, client=client_user, freelancer=freelancer, amount='99999999999999.99',
            )
        assert not Contract.objects.exists()
        assert not EscrowTransaction.objects.exists()

    def test_oversized_credit_and_withdrawal(self, engine, freelancer):
        with pytest.raises(InvalidAmount):
            engine.ledger.credit(freelancer, '10000000000.00', WalletTransaction.REF_MANUAL, None,
                                 to_pending=False)
        with pytest.raises(InvalidAmount):
            engine.request_withdrawal(freelancer, '10000000000.00', {
                'bank_name': 'Banque Centrale',
                'account_number': 'TN59 1000 6035',
                'account_holder_name': 'Free Lancer',
            })
        assert not WalletTransaction.objects.exists()

    def test_only_clients_accept(self, engine, freelancer, other_freelancer):
        with pytest.raises(Unauthorized):
            engine.accept_proposal(project_id=2, client=other_freelancer, freelancer=freelancer, amount='10.00')


class TestEscrowLifecycle:
    def test_full_release_scenario(self, engine, escrow, client_user, freelancer):
        engine.confirm_payment(escrow.pk, client_user)
        wallet = wallet_of(freelancer)
        assert wallet.pending_balance == Decimal('500.00')
        assert wallet.available_balance == Decimal('0.00')

        engine.mark_work_completed(escrow.pk, freelancer)
        released = engine.release_funds(escrow.pk, client_user)

        wallet.refresh_from_db()
        assert released.status == EscrowTransaction.FUNDS_RELEASED
        assert wallet.pending_balance == Decimal('0.00')
        assert wallet.available_balance == Decimal('500.00')
        assert wallet.total_earned == Decimal('500.00')
        assert Contract.objects.get(pk=escrow.contract_id).status == Contract.STATUS_COMPLETED

        types = list(wallet.transactions.order_by('id').values_list('type', 'balance'))
        assert types == [
            (WalletTransaction.CREDIT, WalletTransaction.PENDING),
            (WalletTransaction.RELEASE, WalletTransaction.AVAILABLE),
        ]
        WalletLedger().reconcile(freelancer)

    def test_visited_states_form_a_legal_path(self, engine, escrow, client_user, freelancer, operator):
        engine.confirm_payment(escrow.pk, client_user)
        engine.mark_work_completed(escrow.pk, freelancer)
        engine.dispute(escrow.pk, freelancer)
        engine.release_funds(escrow.pk, operator)

        transitions = list(escrow.transitions.all())
        statuses = [transitions[0].from_status] + [t.to_status for t in transitions]
        assert statuses[0] == EscrowTransaction.PENDING_PAYMENT
        assert state_machine.is_legal_path(statuses)
        for previous, current in zip(transitions, transitions[1:]):
            assert previous.to_status == current.from_status

    def test_release_twice(self, engine, escrow, client_user, freelancer):
        run_to_work_completed(engine, escrow, client_user, freelancer)
        engine.release_funds(escrow.pk, client_user)

        with pytest.raises(InvalidTransition) as excinfo:
            engine.release_funds(escrow.pk, client_user)

        assert excinfo.value.already_applied is True
        assert excinfo.value.current_status == EscrowTransaction.FUNDS_RELEASED
        wallet = wallet_of(freelancer)
        assert wallet.available_balance == Decimal('500.00')
        assert wallet.transactions.filter(type=WalletTransaction.RELEASE).count() == 1
        assert escrow.transitions.filter(action=state_machine.RELEASE_FUNDS).count() == 1

    def test_released_escrow_rejects_every_party(self, engine, escrow, client_user, freelancer):
        run_to_work_completed(engine, escrow, client_user, freelancer)
        engine.release_funds(escrow.pk, client_user)

        calls = [
            (engine.refund, client_user),
            (engine.mark_work_completed, client_user),
            (engine.release_funds, freelancer),
            (engine.confirm_payment, freelancer),
        ]
        for method, actor in calls:
            with pytest.raises(InvalidTransition):
                method(escrow.pk, actor)
        assert escrow.transitions.count() == 3

    def test_dispute_then_refund(self, engine, escrow, client_user, freelancer, operator):
        engine.confirm_payment(escrow.pk, client_user)
        engine.dispute(escrow.pk, client_user)
        refunded = engine.refund(escrow.pk, operator)

        wallet = wallet_of(freelancer)
        assert refunded.status == EscrowTransaction.REFUNDED
        assert wallet.pending_balance == Decimal('0.00')
        assert wallet.available_balance == Decimal('0.00')
        assert wallet.total_earned == Decimal('0.00')
        assert Contract.objects.get(pk=escrow.contract_id).status == Contract.STATUS_CANCELLED

        reversal = wallet.transactions.get(type=WalletTransaction.FEE)
        assert reversal.reference_type == WalletTransaction.REF_ESCROW_REFUND
        assert reversal.balance == WalletTransaction.PENDING
        WalletLedger().reconcile(freelancer)

    def test_freelancer_cannot_confirm_payment(self, engine, escrow, freelancer):
        with pytest.raises(Unauthorized):
            engine.confirm_payment(escrow.pk, freelancer)

        escrow.refresh_from_db()
        assert escrow.status == EscrowTransaction.PENDING_PAYMENT
        assert escrow.version == 0
        assert not Wallet.objects.filter(user=freelancer).exists()

    def test_client_cannot_refund(self, engine, escrow, client_user):
        engine.confirm_payment(escrow.pk, client_user)
        engine.dispute(escrow.pk, client_user)
        with pytest.raises(Unauthorized):
            engine.refund(escrow.pk, client_user)

    def test_transition_records_actor(self, engine, escrow, client_user):
        engine.confirm_payment(escrow.pk, client_user)
        escrow.refresh_from_db()
        assert escrow.last_actor == client_user
        assert escrow.last_transition_at is not None
        assert escrow.version == 1

    def test_pending_shortfall_rolls_back(self, engine, escrow, client_user, freelancer, caplog):
        run_to_work_completed(engine, escrow, client_user, freelancer)
        Wallet.objects.filter(user=freelancer).update(pending_balance=Decimal('0.00'))

        with caplog.at_level(logging.CRITICAL):
            with pytest.raises(InsufficientPendingFunds) as excinfo:
                engine.release_funds(escrow.pk, client_user)

        assert excinfo.value.status_code == 500
        assert any(record.levelno == logging.CRITICAL for record in caplog.records)
        escrow.refresh_from_db()
        assert escrow.status == EscrowTransaction.WORK_COMPLETED
        assert not escrow.transitions.filter(action=state_machine.RELEASE_FUNDS).exists()
        assert wallet_of(freelancer).available_balance == Decimal('0.00')

    def test_payments_disabled(self, engine, escrow, client_user, settings):
        settings.PAYMENTS_ENABLED = False
        with pytest.raises(PaymentsDisabled):
            engine.confirm_payment(escrow.pk, client_user)


class TestCompareAndSet:
    def test_stale_version_loses(self, escrow, client_user):
        won = EscrowTransaction.objects.compare_and_set(
            pk=escrow.pk,
            from_status=EscrowTransaction.PENDING_PAYMENT,
            version=escrow.version,
            to_status=EscrowTransaction.PAYMENT_RECEIVED,
            actor=client_user,
        )
        lost = EscrowTransaction.objects.compare_and_set(
            pk=escrow.pk,
            from_status=EscrowTransaction.PENDING_PAYMENT,
            version=escrow.version,
            to_status=EscrowTransaction.PAYMENT_RECEIVED,
            actor=client_user,
        )
        assert won is True
        assert lost is False
        escrow.refresh_from_db()
        assert escrow.version == 1

    def test_lost_race_surfaces_as_invalid_transition(self, escrow, client_user, freelancer, monkeypatch):
        engine = PaymentEngine()
        run_to_work_completed(engine, escrow, client_user, freelancer)
        monkeypatch.setattr(EscrowTransaction.objects, 'compare_and_set', lambda **kwargs: False)

        with pytest.raises(InvalidTransition):
            engine.release_funds(escrow.pk, client_user)
        assert wallet_of(freelancer).available_balance == Decimal('0.00')

    def test_stale_read_loses_to_committed_release(self, engine, escrow, client_user, freelancer, monkeypatch):
        run_to_work_completed(engine, escrow, client_user, freelancer)
        escrow.refresh_from_db()
        stale_status, stale_version = escrow.status, escrow.version
        engine.release_funds(escrow.pk, client_user)

        real_resolve = state_machine.resolve

        def resolve_on_stale_row(current, action, actor):
            # the row as it was read before the other release committed
            current.status, current.version = stale_status, stale_version
            return real_resolve(current, action, actor)

        monkeypatch.setattr(state_machine, 'resolve', resolve_on_stale_row)
        with pytest.raises(InvalidTransition) as excinfo:
            engine.release_funds(escrow.pk, client_user)

        assert excinfo.value.already_applied is True
        assert excinfo.value.current_status == EscrowTransaction.FUNDS_RELEASED
        wallet = wallet_of(freelancer)
        assert wallet.available_balance == Decimal('500.00')
        assert wallet.transactions.filter(type=WalletTransaction.RELEASE).count() == 1
        assert escrow.transitions.filter(action=state_machine.RELEASE_FUNDS).count() == 1


def release_with_retry(escrow_id, actor, attempts=100):
    """SQLite reports contention as OperationalError instead of blocking on the row lock."""
    for _ in range(attempts):
        try:
            PaymentEngine().release_funds(escrow_id, actor)
            return 'ok'
        except InvalidTransition:
            return 'invalid'
        except OperationalError:
            time.sleep(0.02)
    return 'locked'


@pytest.mark.django_db(transaction=True)
def test_concurrent_releases_credit_once(client_user, freelancer):
    engine = PaymentEngine()
    contract = engine.accept_proposal(project_id=5, client=client_user, freelancer=freelancer, amount='300.00')
    escrow = contract.escrow
    run_to_work_completed(engine, escrow, client_user, freelancer)

    workers = 5
    barrier = threading.Barrier(workers)
    outcomes = []

    def release():
        try:
            barrier.wait()
            outcomes.append(release_with_retry(escrow.pk, client_user))
        finally:
            connections.close_all()

    threads = [threading.Thread(target=release) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(outcomes) == ['invalid'] * (workers - 1) + ['ok']
    wallet = wallet_of(freelancer)
    assert wallet.available_balance == Decimal('300.00')
    assert wallet.pending_balance == Decimal('0.00')
    assert wallet.transactions.filter(type=WalletTransaction.RELEASE).count() == 1
    assert escrow.transitions.filter(action=state_machine.RELEASE_FUNDS).count() == 1


class TestEvents:
    def test_events_are_sent_after_commit(self, engine, escrow, client_user, django_capture_on_commit_callbacks):
        received = []

        def listener(sender, event, payload, **kwargs):
            received.append((event, payload))

        payment_event.connect(listener)
        try:
            with django_capture_on_commit_callbacks(execute=False) as callbacks:
                engine.confirm_payment(escrow.pk, client_user)
            assert received == []

            for callback in callbacks:
                callback()
        finally:
            payment_event.disconnect(listener)

        assert [event for event, _ in received] == ['escrow.payment_received']
        payload = received[0][1]
        assert payload['escrow_id'] == escrow.pk
        assert payload['to_status'] == EscrowTransaction.PAYMENT_RECEIVED

    def test_failed_rollback_emits_nothing(self, engine, escrow, freelancer, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks() as callbacks:
            with pytest.raises(Unauthorized):
                engine.confirm_payment(escrow.pk, freelancer)
        assert callbacks == []

    def test_broken_subscriber_does_not_break_payment(self, engine, escrow, client_user,
                                                      django_capture_on_commit_callbacks, mailoutbox):
        def broken(sender, **kwargs):
            raise RuntimeError("subscriber down")

        payment_event.connect(broken)
        try:
            with django_capture_on_commit_callbacks(execute=True):
                engine.confirm_payment(escrow.pk, client_user)
        finally:
            payment_event.disconnect(broken)

        escrow.refresh_from_db()
        assert escrow.status == EscrowTransaction.PAYMENT_RECEIVED
        assert len(mailoutbox) == 1
        assert set(mailoutbox[0].to) == {'client@example.com', 'freelancer@example.com'}
