import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum

from payments.amounts import to_amount
from payments.exceptions import InsufficientFunds, InsufficientPendingFunds, LedgerInconsistency, NotFound
from .models import Wallet, WalletTransaction

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


class WalletLedger:
    """
    Per-user balances and their append-only justification trail.

    Every mutation locks the wallet row and commits the balance change together
    with its ledger entry. Callers that need several steps to be atomic (the
    payment engine) wrap them in their own ``transaction.atomic()`` block; the
    blocks here then become savepoints.
    """

    def get_wallet(self, user):
        wallet, _ = Wallet.objects.get_or_create(user=user)
        return wallet

    def history(self, user):
        return WalletTransaction.objects.filter(wallet__user=user).order_by('-created_at', '-id')

    def lock_wallet(self, user):
        wallet = self.get_wallet(user)
        return Wallet.objects.select_for_update().get(pk=wallet.pk)

    def _write(self, wallet, entry_type, bucket, amount, reference_type, reference_id, description):
        balance_after = wallet.pending_balance if bucket == WalletTransaction.PENDING else wallet.available_balance
        entry = WalletTransaction.objects.create(
            wallet=wallet,
            type=entry_type,
            balance=bucket,
            amount=amount,
            description=description,
            reference_type=reference_type,
            reference_id=reference_id,
            balance_after=balance_after,
        )
        logger.info(
            "Ledger entry written",
            extra={
                'wallet_id': wallet.pk,
                'entry_id': entry.pk,
                'type': entry_type,
                'balance': bucket,
                'amount': str(amount),
                'reference': f"{reference_type}:{reference_id}",
            },
        )
        return entry

    def credit(self, user, amount, reference_type, reference_id, to_pending, description=''):
        amount = to_amount(amount)
        with transaction.atomic():
            wallet = self.lock_wallet(user)
            if to_pending:
                wallet.pending_balance += amount
                bucket = WalletTransaction.PENDING
            else:
                wallet.available_balance += amount
                wallet.total_earned += amount
                bucket = WalletTransaction.AVAILABLE
            wallet.save(update_fields=['pending_balance', 'available_balance', 'total_earned', 'updated_at'])
            return self._write(wallet, WalletTransaction.CREDIT, bucket, amount,
                               reference_type, reference_id, description)

    def move_from_pending_to_available(self, user, amount, reference_type, reference_id, description=''):
        amount = to_amount(amount)
        with transaction.atomic():
            wallet = self.lock_wallet(user)
            if wallet.pending_balance < amount:
                self._pending_shortfall(wallet, amount, reference_type, reference_id)
            wallet.pending_balance -= amount
            wallet.available_balance += amount
            wallet.total_earned += amount
            wallet.save(update_fields=['pending_balance', 'available_balance', 'total_earned', 'updated_at'])
            return self._write(wallet, WalletTransaction.RELEASE, WalletTransaction.AVAILABLE, amount,
                               reference_type, reference_id, description)

    def debit_available(self, user, amount, reference_type, reference_id, description='',
                        entry_type=WalletTransaction.WITHDRAWAL):
        amount = to_amount(amount)
        with transaction.atomic():
            wallet = self.lock_wallet(user)
            if wallet.available_balance < amount:
                raise InsufficientFunds(
                    f"Insufficient balance. Available: {wallet.available_balance}",
                    available_balance=str(wallet.available_balance),
                )
            wallet.available_balance -= amount
            wallet.save(update_fields=['available_balance', 'updated_at'])
            return self._write(wallet, entry_type, WalletTransaction.AVAILABLE, amount,
                               reference_type, reference_id, description)

    def debit_pending(self, user, amount, reference_type, reference_id, description=''):
        """Reverse a pending credit (escrow refund). Written as a ``fee`` entry on the pending bucket."""
        amount = to_amount(amount)
        with transaction.atomic():
            wallet = self.lock_wallet(user)
            if wallet.pending_balance < amount:
                self._pending_shortfall(wallet, amount, reference_type, reference_id)
            wallet.pending_balance -= amount
            wallet.save(update_fields=['pending_balance', 'updated_at'])
            return self._write(wallet, WalletTransaction.FEE, WalletTransaction.PENDING, amount,
                               reference_type, reference_id, description)

    def reserve(self, user, amount):
        """Hold ``amount`` out of the available balance for a withdrawal. No ledger entry."""
        amount = to_amount(amount)
        with transaction.atomic():
            wallet = self.lock_wallet(user)
            if wallet.available_balance < amount:
                raise InsufficientFunds(
                    f"Insufficient balance. Available: {wallet.available_balance}",
                    available_balance=str(wallet.available_balance),
                )
            wallet.available_balance -= amount
            wallet.save(update_fields=['available_balance', 'updated_at'])
            return wallet

    def release_reservation(self, user, amount):
        amount = to_amount(amount)
        with transaction.atomic():
            wallet = self.lock_wallet(user)
            wallet.available_balance += amount
            wallet.save(update_fields=['available_balance', 'updated_at'])
            return wallet

    def record_withdrawal(self, user, amount, reference_id, description=''):
        """Finalize a reserved withdrawal: the funds already left the balance, this writes the entry."""
        amount = to_amount(amount)
        with transaction.atomic():
            wallet = self.lock_wallet(user)
            return self._write(wallet, WalletTransaction.WITHDRAWAL, WalletTransaction.AVAILABLE, amount,
                               WalletTransaction.REF_WITHDRAWAL, reference_id, description)

    def _pending_shortfall(self, wallet, amount, reference_type, reference_id):
        context = {
            'wallet_id': wallet.pk,
            'user_id': wallet.user_id,
            'pending_balance': str(wallet.pending_balance),
            'requested': str(amount),
            'reference': f"{reference_type}:{reference_id}",
        }
        logger.critical("Pending balance shortfall: ledger is inconsistent", extra=context)
        raise InsufficientPendingFunds(**context)

    def reconcile(self, user):
        """
        Replay the user's ledger and compare it with the stored balances.
        Open withdrawal reservations are held outside the wallet and are
        subtracted from the replayed available balance.
        """
        from withdrawals.models import WithdrawalRequest

        wallet = Wallet.objects.filter(user=user).first()
        if wallet is None:
            raise NotFound("Wallet not found.")
        totals = {
            (row['type'], row['balance']): row['total']
            for row in wallet.transactions.order_by().values('type', 'balance').annotate(total=Sum('amount'))
        }

        def total(entry_type, bucket):
            return totals.get((entry_type, bucket)) or ZERO

        reserved = WithdrawalRequest.objects.filter(
            wallet=wallet, status__in=WithdrawalRequest.OPEN_STATUSES,
        ).aggregate(total=Sum('amount'))['total'] or ZERO

        released = total(WalletTransaction.RELEASE, WalletTransaction.AVAILABLE)
        expected_pending = (
            total(WalletTransaction.CREDIT, WalletTransaction.PENDING)
            - released
            - total(WalletTransaction.FEE, WalletTransaction.PENDING)
        )
        expected_available = (
            total(WalletTransaction.CREDIT, WalletTransaction.AVAILABLE)
            + released
            - total(WalletTransaction.WITHDRAWAL, WalletTransaction.AVAILABLE)
            - total(WalletTransaction.FEE, WalletTransaction.AVAILABLE)
            - reserved
        )
        expected_earned = total(WalletTransaction.CREDIT, WalletTransaction.AVAILABLE) + released

        report = {
            'wallet_id': wallet.pk,
            'user_id': wallet.user_id,
            'available_balance': wallet.available_balance,
            'expected_available_balance': expected_available,
            'pending_balance': wallet.pending_balance,
            'expected_pending_balance': expected_pending,
            'total_earned': wallet.total_earned,
            'expected_total_earned': expected_earned,
            'reserved': reserved,
        }
        consistent = (
            wallet.available_balance == expected_available
            and wallet.pending_balance == expected_pending
            and wallet.total_earned == expected_earned
        )
        if not consistent:
            context = {key: str(value) for key, value in report.items()}
            logger.critical("Wallet failed reconciliation", extra=context)
            raise LedgerInconsistency(**context)
        return report
