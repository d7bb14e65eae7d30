import getpass

from django.core.management.base import BaseCommand, CommandError

from accounts.services import CredentialStore, CredentialStoreError


class Command(BaseCommand):
    help = "Create an admin identity (API admin role plus Django admin site access). Use this to bootstrap the first admin."

    def add_arguments(self, parser):
        parser.add_argument("--student-id", required=True)
        parser.add_argument("--name", required=True)
        parser.add_argument(
            "--password",
            help="Admin password. Prompted for when omitted.",
        )

    def handle(self, *args, **options):
        password = options["password"]
        if not password:
            password = getpass.getpass("Password: ")
            if password != getpass.getpass("Password (again): "):
                raise CommandError("Passwords do not match")

        try:
            user = CredentialStore().register(
                student_id=options["student_id"],
                name=options["name"],
                password=password,
                is_admin=True,
            )
        except CredentialStoreError as e:
            raise CommandError(str(e)) from e

        self.stdout.write(self.style.SUCCESS(f"Admin {user.student_id} created (id={user.pk})"))
