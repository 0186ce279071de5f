from django.contrib import admin
from .models import Material, MaterialPurchase, MaterialUsage


class MaterialPurchaseInline(admin.TabularInline):
    model = MaterialPurchase
    extra = 0
    readonly_fields = ['total_cost', 'recorded_by', 'created_at']


class MaterialUsageInline(admin.TabularInline):
    model = MaterialUsage
    extra = 0
    readonly_fields = ['recorded_by', 'created_at']


@admin.register(Material)
class MaterialAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'company', 'unit', 'purchased_qty', 'used_qty', 'min_stock_level']
    list_filter = ['company']
    search_fields = ['name', 'sku']
    readonly_fields = ['purchased_qty', 'used_qty', 'created_at', 'updated_at']
    inlines = [MaterialPurchaseInline, MaterialUsageInline]


@admin.register(MaterialPurchase)
class MaterialPurchaseAdmin(admin.ModelAdmin):
    list_display = ['material', 'quantity', 'unit_cost', 'total_cost', 'supplier_name', 'purchase_date']
    list_filter = ['purchase_date']
    search_fields = ['material__name', 'supplier_name', 'invoice_number']


@admin.register(MaterialUsage)
class MaterialUsageAdmin(admin.ModelAdmin):
    list_display = ['material', 'quantity', 'usage_date', 'used_for']
    list_filter = ['usage_date']
    search_fields = ['material__name', 'used_for']
