from django.core.management.base import BaseCommand
from django.db import transaction
from buildflow.core.models import Company
from buildflow.pipeline.cache import invalidate_board_cache_on_commit
from buildflow.pipeline.models import Stage, Card


class Command(BaseCommand):
    help = 'Renumbers stage and card order fields so every board is contiguous (0..n-1)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--company-id',
            type=int,
            help='Repair a single company only',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Perform a dry run without saving changes',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN MODE: No changes will be saved."))

        companies = Company.objects.all().order_by('id')
        if options.get('company_id'):
            companies = companies.filter(id=options['company_id'])

        total_fixed = 0
        with transaction.atomic():
            for company in companies:
                self.stdout.write(f"\nProcessing Company: {company.name} (ID: {company.id})")
                fixed = 0

                stages = list(Stage.objects.select_for_update().filter(company=company).order_by('order', 'id'))
                for index, stage in enumerate(stages):
                    if stage.order != index:
                        self.stdout.write(self.style.NOTICE(f"  - Stage '{stage.name}': order {stage.order} -> {index}"))
                        stage.order = index
                        fixed += 1
                        if not dry_run:
                            Stage.objects.filter(pk=stage.pk).update(order=index)

                    cards = Card.objects.select_for_update().filter(
                        stage=stage, status=Card.STATUS_ACTIVE
                    ).order_by('order', 'id')
                    for card_index, card in enumerate(cards):
                        if card.order != card_index:
                            self.stdout.write(self.style.NOTICE(
                                f"    - Card '{card.title}': order {card.order} -> {card_index}"
                            ))
                            fixed += 1
                            if not dry_run:
                                Card.objects.filter(pk=card.pk).update(order=card_index)

                if fixed:
                    if not dry_run:
                        invalidate_board_cache_on_commit(company.id)
                    self.stdout.write(self.style.SUCCESS(f"  - {fixed} order value(s) corrected"))
                else:
                    self.stdout.write("  - Board order correct")
                total_fixed += fixed

            if dry_run:
                self.stdout.write(self.style.WARNING(f"\nDry run complete. {total_fixed} change(s) found. Rolling back."))
                transaction.set_rollback(True)
            else:
                self.stdout.write(self.style.SUCCESS(f"\nBoard repair complete. {total_fixed} change(s) committed."))
