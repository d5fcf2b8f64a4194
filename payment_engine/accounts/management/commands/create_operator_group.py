from django.conf import settings
from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission
from django.contrib.auth import get_user_model

User = get_user_model()

OPERATOR_PERMISSIONS = {
    'escrow': ['view_escrowtransaction', 'change_escrowtransaction', 'view_escrowtransition'],
    'wallet': ['view_wallet', 'view_wallettransaction'],
    'withdrawals': ['view_withdrawalrequest', 'change_withdrawalrequest'],
    'contracts': ['view_contract'],
}


class Command(BaseCommand):
    help = "Creates the operators group and grants escrow/withdrawal permissions. Optionally assign a user."

    def add_arguments(self, parser):
        parser.add_argument('--email', type=str, help='Email of user to assign to the operators group')

    def handle(self, *args, **options):
        group_name = settings.OPERATOR_GROUP_NAME

        group, created = Group.objects.get_or_create(name=group_name)

        if created:
            self.stdout.write(self.style.SUCCESS(f"Created group: {group_name}"))
        else:
            self.stdout.write(f"Group '{group_name}' already exists.")

        granted = 0
        for app_label, codenames in OPERATOR_PERMISSIONS.items():
            perms = Permission.objects.filter(content_type__app_label=app_label, codename__in=codenames)
            for perm in perms:
                group.permissions.add(perm)
                granted += 1

        self.stdout.write(self.style.SUCCESS(f"Assigned {granted} permissions to {group_name} group."))

        email = options['email']
        if email:
            try:
                user = User.objects.get(email=email)
                user.groups.add(group)
                self.stdout.write(self.style.SUCCESS(f"User {email} added to {group_name} group."))
            except User.DoesNotExist:
                self.stdout.write(self.style.ERROR(f"User with email {email} does not exist."))
