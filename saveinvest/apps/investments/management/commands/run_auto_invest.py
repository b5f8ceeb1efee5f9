import json

from django.core.management.base import BaseCommand, CommandError

from saveinvest.apps.investments.services.engine import evaluate_all
from saveinvest.apps.investments.tasks import TRIGGER_CHOICES


class Command(BaseCommand):
    help = "Evaluate auto-invest rules for every eligible user."

    def add_arguments(self, parser):
        parser.add_argument(
            "--trigger",
            dest="trigger",
            default="SCHEDULED",
            help="Which rules to evaluate: SCHEDULED, THRESHOLD or ALL.",
        )

    def handle(self, *args, **options):
        trigger = options["trigger"].upper()
        if trigger not in TRIGGER_CHOICES:
            raise CommandError(f"Unknown trigger {trigger}; use SCHEDULED, THRESHOLD or ALL.")
        summary = evaluate_all(TRIGGER_CHOICES[trigger])
        self.stdout.write(json.dumps(summary.as_dict(), indent=2))
        if summary.failed:
            self.stdout.write(self.style.WARNING(f"{summary.failed} user(s) failed."))
        else:
            self.stdout.write(self.style.SUCCESS("Auto-invest pass complete."))
