from decimal import Decimal

import pytest

from wallet.ledger import WalletLedger
from wallet.models import Wallet, WalletTransaction

pytestmark = pytest.mark.django_db


def test_freelancer_wallet_balance(auth_client, freelancer):
    response = auth_client(freelancer).get('/wallet/')
    assert response.status_code == 200
    assert Decimal(response.data['available_balance']) == Decimal('0.00')
    assert response.data['currency'] == 'TND'


def test_clients_have_no_wallet(auth_client, client_user):
    response = auth_client(client_user).get('/wallet/')
    assert response.status_code == 403
    assert response.data['detail'] == "Only freelancers have wallets."


def test_transactions_newest_first(auth_client, freelancer):
    ledger = WalletLedger()
    ledger.credit(freelancer, '1.00', WalletTransaction.REF_MANUAL, None, to_pending=False)
    ledger.credit(freelancer, '2.00', WalletTransaction.REF_MANUAL, None, to_pending=False)

    response = auth_client(freelancer).get('/wallet/transactions/')
    assert response.status_code == 200
    assert response.data['count'] == 2
    assert [row['amount'] for row in response.data['results']] == ['2.00', '1.00']


def test_reconcile_endpoint(auth_client, freelancer, operator, client_user):
    WalletLedger().credit(freelancer, '10.00', WalletTransaction.REF_MANUAL, None, to_pending=False)
    operator_api = auth_client(operator)

    response = operator_api.get('/wallet/reconcile/', {'user_id': freelancer.pk})
    assert response.status_code == 200
    assert Decimal(response.data['expected_available_balance']) == Decimal('10.00')

    assert operator_api.get('/wallet/reconcile/').status_code == 400
    assert operator_api.get('/wallet/reconcile/', {'user_id': 987654}).status_code == 404
    assert auth_client(client_user).get('/wallet/reconcile/', {'user_id': freelancer.pk}).status_code == 403


def test_reconcile_endpoint_does_not_create_wallets(auth_client, operator, client_user):
    response = auth_client(operator).get('/wallet/reconcile/', {'user_id': client_user.pk})
    assert response.status_code == 404
    assert not Wallet.objects.filter(user=client_user).exists()


def test_reconcile_endpoint_reports_mismatch(auth_client, freelancer, operator):
    WalletLedger().credit(freelancer, '10.00', WalletTransaction.REF_MANUAL, None, to_pending=False)
    Wallet.objects.filter(user=freelancer).update(total_earned=Decimal('3.00'))

    response = auth_client(operator).get('/wallet/reconcile/', {'user_id': freelancer.pk})
    assert response.status_code == 500
    assert response.data['code'] == 'ledger_inconsistency'
    assert 'diagnostics' in response.data
