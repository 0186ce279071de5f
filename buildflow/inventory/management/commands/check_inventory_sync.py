"""
Django management command to check Material totals against the purchase and
usage ledgers, optionally repairing any drift
"""
from django.core.management.base import BaseCommand
from buildflow.inventory.models import Material
from buildflow.inventory.services import reconcile_material


class Command(BaseCommand):
    help = 'Check Material purchased/used totals against the purchase and usage ledgers'

    def add_arguments(self, parser):
        parser.add_argument(
            '--company-id',
            type=int,
            help='Check a single company only',
        )
        parser.add_argument(
            '--material-id',
            type=int,
            help='Check specific material ID only',
        )
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Overwrite stored totals with the ledger sums',
        )
        parser.add_argument(
            '--show-all',
            action='store_true',
            help='Show all materials, not just discrepancies',
        )

    def handle(self, *args, **options):
        fix = options.get('fix', False)
        show_all = options.get('show_all', False)

        self.stdout.write("=" * 80)
        self.stdout.write(self.style.SUCCESS("MATERIAL vs LEDGER SYNCHRONIZATION"))
        self.stdout.write("=" * 80)

        materials = Material.objects.select_related('company').order_by('company_id', 'id')
        if options.get('company_id'):
            materials = materials.filter(company_id=options['company_id'])
        if options.get('material_id'):
            materials = materials.filter(id=options['material_id'])

        self.stdout.write(f"Total Materials: {materials.count()}")
        self.stdout.write("")

        discrepancies = 0
        fixed = 0
        for material in materials:
            result = reconcile_material(material, fix=fix)
            if result['in_sync']:
                if show_all:
                    self.stdout.write(f"  OK  {material.name} (ID: {material.id})")
                continue

            discrepancies += 1
            self.stdout.write(self.style.WARNING(
                f"  DRIFT  {material.name} (ID: {material.id}, company {material.company.name}): "
                f"purchased {result['stored_purchased']} vs ledger {result['ledger_purchased']}, "
                f"used {result['stored_used']} vs ledger {result['ledger_used']}"
            ))
            if result['fixed']:
                fixed += 1
                self.stdout.write(self.style.SUCCESS("         fixed"))

        self.stdout.write("")
        if not discrepancies:
            self.stdout.write(self.style.SUCCESS("All materials are in sync with their ledgers."))
        elif fix:
            self.stdout.write(self.style.SUCCESS(f"{fixed} of {discrepancies} material(s) repaired."))
        else:
            self.stdout.write(self.style.WARNING(
                f"{discrepancies} material(s) out of sync. Re-run with --fix to repair."
            ))
