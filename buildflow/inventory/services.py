"""Stock ledger operations for construction materials"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from buildflow.core.utils import create_activity
from .models import Material, MaterialPurchase, MaterialUsage

logger = logging.getLogger('buildflow.inventory')

ZERO = Decimal('0.000')


def format_qty(value):
    """Quantity without trailing zeros, e.g. 5.000 -> 5"""
    return f"{Decimal(value).normalize():f}"


class InsufficientStock(Exception):
    def __init__(self, material, requested):
        self.material = material
        self.requested = requested
        remaining = format_qty(material.remaining_qty)
        super().__init__(f"Insufficient stock. Only {remaining} {material.unit}(s) remaining.")


def record_purchase(material, quantity, unit_cost, user=None, supplier_name='', invoice_number=None,
                    purchase_date=None, notes=''):
    """Add a purchase row and raise purchased_qty by its quantity"""
    quantity, unit_cost = Decimal(str(quantity)), Decimal(str(unit_cost))
    with transaction.atomic():
        material = Material.objects.select_for_update().get(pk=material.pk)
        purchase = MaterialPurchase.objects.create(
            material=material,
            quantity=quantity,
            unit_cost=unit_cost,
            total_cost=(quantity * unit_cost).quantize(Decimal('0.01')),
            supplier_name=supplier_name or '',
            invoice_number=invoice_number or None,
            purchase_date=purchase_date or timezone.localdate(),
            notes=notes or '',
            recorded_by=user,
        )
        material.purchased_qty += quantity
        material.unit_cost = unit_cost
        material.save(update_fields=['purchased_qty', 'unit_cost', 'updated_at'])

        create_activity(
            company=material.company, type='material_purchase', user=user,
            description=f"Purchased {format_qty(quantity)} {material.unit} of {material.name}",
            metadata={'material_id': material.id, 'purchase_id': purchase.id},
        )
    return purchase


def record_usage(material, quantity, user=None, usage_date=None, used_for=''):
    """
    Add a usage row and raise used_qty by its quantity.

    Raises InsufficientStock when the quantity exceeds what remains. Crossing
    the material's minimum stock level writes a low_stock_alert activity.
    """
    quantity = Decimal(str(quantity))
    with transaction.atomic():
        material = Material.objects.select_for_update().get(pk=material.pk)
        if quantity > material.remaining_qty:
            raise InsufficientStock(material, quantity)

        usage = MaterialUsage.objects.create(
            material=material,
            quantity=quantity,
            usage_date=usage_date or timezone.localdate(),
            used_for=used_for or '',
            recorded_by=user,
        )
        material.used_qty += quantity
        material.save(update_fields=['used_qty', 'updated_at'])

        create_activity(
            company=material.company, type='material_usage', user=user,
            description=f"Used {format_qty(quantity)} {material.unit} of {material.name}",
            metadata={'material_id': material.id, 'usage_id': usage.id},
        )
        if material.is_low_stock:
            logger.warning(f"Low stock for material {material.id} ({material.name}): "
                           f"{material.remaining_qty} {material.unit} remaining")
            create_activity(
                company=material.company, type='low_stock_alert', user=user,
                description=f"Low stock: {material.name} has {format_qty(material.remaining_qty)} {material.unit} remaining",
                metadata={'material_id': material.id, 'remaining': str(material.remaining_qty)},
            )
    return usage


def ledger_totals(material):
    purchased = material.purchases.aggregate(total=Sum('quantity'))['total'] or ZERO
    used = material.usages.aggregate(total=Sum('quantity'))['total'] or ZERO
    return purchased, used


def reconcile_material(material, fix=False):
    """
    Compare stored totals against the purchase and usage ledgers.

    Returns a dict describing the drift; with ``fix`` the stored totals are
    overwritten by the ledger sums.
    """
    purchased, used = ledger_totals(material)
    result = {
        'material_id': material.id,
        'name': material.name,
        'stored_purchased': material.purchased_qty,
        'ledger_purchased': purchased,
        'stored_used': material.used_qty,
        'ledger_used': used,
        'in_sync': material.purchased_qty == purchased and material.used_qty == used,
        'fixed': False,
    }
    if fix and not result['in_sync']:
        Material.objects.filter(pk=material.pk).update(purchased_qty=purchased, used_qty=used)
        material.purchased_qty = purchased
        material.used_qty = used
        result['fixed'] = True
        logger.info(f"Reconciled material {material.id}: purchased={purchased} used={used}")
    return result


def material_history(material):
    """Purchases and usages merged into one list, newest first"""
    entries = []
    for purchase in material.purchases.select_related('recorded_by'):
        entries.append({
            'type': 'purchase',
            'id': purchase.id,
            'quantity': purchase.quantity,
            'unitCost': purchase.unit_cost,
            'totalCost': purchase.total_cost,
            'supplierName': purchase.supplier_name,
            'invoiceNumber': purchase.invoice_number,
            'date': purchase.purchase_date,
            'notes': purchase.notes,
            'recordedBy': purchase.recorded_by.username if purchase.recorded_by else None,
            'createdAt': purchase.created_at,
        })
    for usage in material.usages.select_related('recorded_by'):
        entries.append({
            'type': 'usage',
            'id': usage.id,
            'quantity': usage.quantity,
            'usedFor': usage.used_for,
            'date': usage.usage_date,
            'recordedBy': usage.recorded_by.username if usage.recorded_by else None,
            'createdAt': usage.created_at,
        })
    entries.sort(key=lambda e: (e['date'], e['createdAt']), reverse=True)
    return entries
