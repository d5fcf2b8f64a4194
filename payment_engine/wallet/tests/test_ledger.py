from decimal import Decimal

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from payments.exceptions import (
    InsufficientFunds,
    InsufficientPendingFunds,
    InvalidAmount,
    LedgerInconsistency,
    NotFound,
)
from wallet.ledger import WalletLedger
from wallet.models import Wallet, WalletTransaction

pytestmark = pytest.mark.django_db


@pytest.fixture
def ledger():
    return WalletLedger()


def test_wallet_created_lazily(ledger, freelancer):
    assert not Wallet.objects.filter(user=freelancer).exists()
    wallet = ledger.get_wallet(freelancer)
    assert wallet.available_balance == Decimal('0.00')
    assert ledger.get_wallet(freelancer).pk == wallet.pk


def test_credit_pending_and_available(ledger, freelancer):
    ledger.credit(freelancer, '40.00', WalletTransaction.REF_ESCROW, 1, to_pending=True)
    entry = ledger.credit(freelancer, '15.50', WalletTransaction.REF_MANUAL, None, to_pending=False)

    wallet = ledger.get_wallet(freelancer)
    assert wallet.pending_balance == Decimal('40.00')
    assert wallet.available_balance == Decimal('15.50')
    assert wallet.total_earned == Decimal('15.50')
    assert entry.balance_after == Decimal('15.50')
    ledger.reconcile(freelancer)


@pytest.mark.parametrize('amount', ['0', '-3', '1.001'])
def test_credit_rejects_invalid_amount(ledger, freelancer, amount):
    with pytest.raises(InvalidAmount):
        ledger.credit(freelancer, amount, WalletTransaction.REF_MANUAL, None, to_pending=False)
    assert not WalletTransaction.objects.exists()


def test_move_requires_pending_funds(ledger, freelancer):
    ledger.credit(freelancer, '10.00', WalletTransaction.REF_ESCROW, 1, to_pending=True)
    with pytest.raises(InsufficientPendingFunds) as excinfo:
        ledger.move_from_pending_to_available(freelancer, '20.00', WalletTransaction.REF_ESCROW_RELEASE, 1)
    assert Decimal(excinfo.value.context['pending_balance']) == Decimal('10.00')


def test_debit_available_checks_balance(ledger, freelancer):
    ledger.credit(freelancer, '30.00', WalletTransaction.REF_MANUAL, None, to_pending=False)
    with pytest.raises(InsufficientFunds):
        ledger.debit_available(freelancer, '30.01', WalletTransaction.REF_WITHDRAWAL, 1)

    ledger.debit_available(freelancer, '5.00', WalletTransaction.REF_MANUAL, None,
                           entry_type=WalletTransaction.FEE)
    wallet = ledger.get_wallet(freelancer)
    assert wallet.available_balance == Decimal('25.00')
    assert wallet.total_earned == Decimal('30.00')
    ledger.reconcile(freelancer)


def test_reservation_has_no_ledger_entry(ledger, freelancer):
    ledger.credit(freelancer, '50.00', WalletTransaction.REF_MANUAL, None, to_pending=False)
    ledger.reserve(freelancer, '20.00')
    assert ledger.get_wallet(freelancer).available_balance == Decimal('30.00')
    assert WalletTransaction.objects.count() == 1

    ledger.release_reservation(freelancer, '20.00')
    assert ledger.get_wallet(freelancer).available_balance == Decimal('50.00')

    with pytest.raises(InsufficientFunds):
        ledger.reserve(freelancer, '50.01')


def test_entries_are_immutable(ledger, freelancer):
    entry = ledger.credit(freelancer, '10.00', WalletTransaction.REF_MANUAL, None, to_pending=False)
    entry.amount = Decimal('99.00')
    with pytest.raises(ValueError):
        entry.save()
    with pytest.raises(ValueError):
        entry.delete()
    assert WalletTransaction.objects.get(pk=entry.pk).amount == Decimal('10.00')


def test_history_newest_first(ledger, freelancer):
    first = ledger.credit(freelancer, '1.00', WalletTransaction.REF_MANUAL, None, to_pending=False)
    second = ledger.credit(freelancer, '2.00', WalletTransaction.REF_MANUAL, None, to_pending=False)
    assert list(ledger.history(freelancer)) == [second, first]


def test_reconcile_detects_tampering(ledger, freelancer):
    ledger.credit(freelancer, '10.00', WalletTransaction.REF_MANUAL, None, to_pending=False)
    Wallet.objects.filter(user=freelancer).update(available_balance=Decimal('11.00'))

    with pytest.raises(LedgerInconsistency) as excinfo:
        ledger.reconcile(freelancer)
    assert Decimal(excinfo.value.context['expected_available_balance']) == Decimal('10.00')


def test_reconcile_without_wallet_creates_nothing(ledger, client_user):
    with pytest.raises(NotFound):
        ledger.reconcile(client_user)
    assert not Wallet.objects.filter(user=client_user).exists()


def test_reconcile_wallets_command(ledger, freelancer, other_freelancer, capsys):
    ledger.credit(freelancer, '10.00', WalletTransaction.REF_MANUAL, None, to_pending=False)
    ledger.credit(other_freelancer, '5.00', WalletTransaction.REF_ESCROW, 1, to_pending=True)

    call_command('reconcile_wallets')
    assert "2 wallet(s) reconciled" in capsys.readouterr().out

    Wallet.objects.filter(user=other_freelancer).update(pending_balance=Decimal('0.00'))
    with pytest.raises(CommandError):
        call_command('reconcile_wallets')

    call_command('reconcile_wallets', user_id=freelancer.pk)
    with pytest.raises(CommandError):
        call_command('reconcile_wallets', user_id=999999)
