from django.core.management.base import BaseCommand, CommandError

from payments.exceptions import LedgerInconsistency
from wallet.ledger import WalletLedger
from wallet.models import Wallet


class Command(BaseCommand):
    help = "Replays wallet ledgers and reports wallets whose balances do not match."

    def add_arguments(self, parser):
        parser.add_argument('--user-id', type=int, help='Only reconcile the wallet of this user')

    def handle(self, *args, **options):
        ledger = WalletLedger()
        wallets = Wallet.objects.select_related('user').order_by('pk')
        if options['user_id']:
            wallets = wallets.filter(user_id=options['user_id'])
            if not wallets.exists():
                raise CommandError(f"No wallet for user {options['user_id']}.")

        failed = 0
        checked = 0
        for wallet in wallets.iterator():
            checked += 1
            try:
                ledger.reconcile(wallet.user)
            except LedgerInconsistency as exc:
                failed += 1
                self.stdout.write(self.style.ERROR(f"Wallet #{wallet.pk} ({wallet.user}): {exc.context}"))

        if failed:
            raise CommandError(f"{failed} of {checked} wallet(s) failed reconciliation.")
        self.stdout.write(self.style.SUCCESS(f"{checked} wallet(s) reconciled."))
