import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Wallet',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('available_balance', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('pending_balance', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('total_earned', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='wallet', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('available_balance__gte', 0)), name='wallet_available_non_negative'),
                    models.CheckConstraint(condition=models.Q(('pending_balance__gte', 0)), name='wallet_pending_non_negative'),
                    models.CheckConstraint(condition=models.Q(('total_earned__gte', 0)), name='wallet_total_earned_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='WalletTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('type', models.CharField(choices=[('credit', 'Credit'), ('release', 'Release'), ('withdrawal', 'Withdrawal'), ('fee', 'Fee')], max_length=20)),
                ('balance', models.CharField(choices=[('available', 'Available'), ('pending', 'Pending')], max_length=20)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('description', models.CharField(blank=True, max_length=255)),
                ('reference_type', models.CharField(choices=[('escrow', 'Escrow payment'), ('escrow_release', 'Escrow release'), ('escrow_refund', 'Escrow refund'), ('withdrawal', 'Withdrawal'), ('manual', 'Manual adjustment')], max_length=30)),
                ('reference_id', models.PositiveBigIntegerField(blank=True, null=True)),
                ('balance_after', models.DecimalField(decimal_places=2, max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('wallet', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='transactions', to='wallet.wallet')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
                'indexes': [
                    models.Index(fields=['wallet', 'created_at'], name='wallet_tx_wallet_time_idx'),
                    models.Index(fields=['reference_type', 'reference_id'], name='wallet_tx_reference_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('amount__gt', 0)), name='wallet_tx_amount_positive'),
                ],
            },
        ),
    ]
