"""
Verify balance ledger integrity: every transaction's balance_before equals the
previous row's balance_after, balance_after = balance_before +/- amount, and the
last balance_after equals the budget's current_balance.
Usage: python manage.py verify_ledger_chain [--student ID]
Exits with an error if any chain is broken.
"""
from django.core.management.base import BaseCommand, CommandError

from balance.models import StudentBudget
from core.container import get_services


class Command(BaseCommand):
    help = 'Verify balance ledger chains (all budgets, or one student with --student)'

    def add_arguments(self, parser):
        parser.add_argument('--student', type=int, help='StudentProfile id (default: all budgets)')

    def handle(self, *args, **options):
        ledger = get_services().ledger
        student_id = options.get('student')

        if student_id:
            student_ids = [student_id]
        else:
            student_ids = list(StudentBudget.objects.order_by('student_id').values_list('student_id', flat=True))

        broken = 0
        for sid in student_ids:
            report = ledger.verify_chain(sid)
            if report.budget_id is None:
                self.stdout.write(self.style.WARNING(f"Student {sid}: no budget"))
                continue
            if report.is_valid:
                self.stdout.write(
                    f"Student {sid}: OK ({report.transaction_count} transactions, "
                    f"balance {report.current_balance})"
                )
                continue

            broken += 1
            self.stdout.write(self.style.ERROR(f"Student {sid}: BROKEN"))
            for item in report.breaks:
                self.stdout.write(
                    f"  {item.kind}: transaction {item.transaction_id} "
                    f"(previous {item.previous_transaction_id}) expected {item.expected}, found {item.found}"
                )
            if not report.balance_matches:
                self.stdout.write(
                    f"  current_balance {report.current_balance} != last balance_after {report.last_balance_after}"
                )

        if broken:
            raise CommandError(f"{broken} of {len(student_ids)} ledger chain(s) broken")
        self.stdout.write(self.style.SUCCESS(f"Verified {len(student_ids)} ledger chain(s)"))
