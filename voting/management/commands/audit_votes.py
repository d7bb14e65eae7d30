from django.core.management.base import BaseCommand, CommandError

from voting.services import VoteLedger


class Command(BaseCommand):
    help = "Check the vote ledger against identity flags and candidate tallies."

    def handle(self, *args, **options):
        problems = VoteLedger().reconcile()
        if problems:
            raise CommandError(
                f"{len(problems)} discrepancies found:\n" + "\n".join(problems)
            )
        self.stdout.write(self.style.SUCCESS("OK: ledger, flags and tallies agree"))
