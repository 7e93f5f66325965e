from django.core.management.base import BaseCommand, CommandError

from store.base import CredentialStoreError
from store.seed import QUESTIONS
from store.utils import get_credential_store


class Command(BaseCommand):
    help = "Push the starter question bank to the credential store"

    def handle(self, *args, **options):
        store = get_credential_store()

        try:
            store.upsert_quizzes(QUESTIONS)
        except CredentialStoreError as e:
            raise CommandError(f"Could not seed quizzes: {e}")

        self.stdout.write(self.style.SUCCESS(f"Seeded {len(QUESTIONS)} questions"))
