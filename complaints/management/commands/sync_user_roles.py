from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth.models import User

from complaints.models import Role, UserProfile


class Command(BaseCommand):
    help = 'Create missing complaint-desk profiles and optionally change one user\'s role'

    def add_arguments(self, parser):
        parser.add_argument(
            '--role',
            type=str,
            choices=Role.values,
            help='Role for users without a profile, or for --user (student, admin, superadmin)',
            default=Role.STUDENT
        )

        parser.add_argument(
            '--user',
            type=str,
            help='Email of a single user whose role should be set to --role',
        )

    def handle(self, *args, **options):
        role = options['role']

        if options.get('user'):
            self.set_role(options['user'], role)
            return

        created_count = 0

        for user in User.objects.filter(profile__isnull=True):
            user_role = Role.SUPERADMIN if user.is_superuser else role
            UserProfile.objects.create(user=user, role=user_role)

            created_count += 1
            self.stdout.write(
                self.style.SUCCESS(f'Created {user_role} profile for {user.username}')
            )

        self.stdout.write(
            self.style.SUCCESS(f'Created {created_count} missing profiles')
        )

    def set_role(self, email, role):
        user = User.objects.filter(email__iexact=email).first()
        if user is None:
            raise CommandError(f'No user with email "{email}"')

        profile, _ = UserProfile.objects.get_or_create(user=user)
        profile.role = role
        profile.save(update_fields=['role', 'updated_at'])

        self.stdout.write(
            self.style.SUCCESS(f'{user.username} is now {profile.get_role_display()}')
        )
