from django.conf import settings
from django.db import models
from decimal import Decimal
from buildflow.core.models import Company


class Material(models.Model):
    """Construction material tracked per company; stock is purchased minus used"""
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='materials')
    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=100, blank=True, null=True)
    description = models.TextField(blank=True)
    unit = models.CharField(max_length=30)
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    purchased_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    used_qty = models.DecimalField(max_digits=12, decimal_places=3, default=Decimal('0.000'))
    min_stock_level = models.DecimalField(max_digits=12, decimal_places=3, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    @property
    def remaining_qty(self):
        return self.purchased_qty - self.used_qty

    @property
    def is_low_stock(self):
        return self.min_stock_level is not None and self.remaining_qty <= self.min_stock_level

    class Meta:
        db_table = 'materials'
        ordering = ['name']
        constraints = [
            models.UniqueConstraint(fields=['company', 'sku'], name='uniq_material_company_sku'),
        ]
        indexes = [
            models.Index(fields=['company', 'name'], name='idx_material_company_name'),
        ]


class MaterialPurchase(models.Model):
    """Purchase ledger; every row adds to Material.purchased_qty"""
    material = models.ForeignKey(Material, on_delete=models.CASCADE, related_name='purchases')
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2)
    supplier_name = models.CharField(max_length=200, blank=True)
    invoice_number = models.CharField(max_length=100, blank=True, null=True)
    purchase_date = models.DateField()
    notes = models.TextField(blank=True)
    recorded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='material_purchases')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'material_purchases'
        ordering = ['-purchase_date', '-created_at']


class MaterialUsage(models.Model):
    """Usage ledger; every row adds to Material.used_qty"""
    material = models.ForeignKey(Material, on_delete=models.CASCADE, related_name='usages')
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    usage_date = models.DateField()
    used_for = models.CharField(max_length=255, blank=True)
    recorded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='material_usages')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'material_usages'
        ordering = ['-usage_date', '-created_at']
