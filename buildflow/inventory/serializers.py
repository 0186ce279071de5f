from decimal import Decimal
from rest_framework import serializers
from .models import Material, MaterialPurchase, MaterialUsage


class MaterialSerializer(serializers.ModelSerializer):
    unitCost = serializers.DecimalField(source='unit_cost', max_digits=12, decimal_places=2, required=False,
                                        min_value=Decimal('0'))
    purchasedQty = serializers.DecimalField(source='purchased_qty', max_digits=12, decimal_places=3, read_only=True)
    usedQty = serializers.DecimalField(source='used_qty', max_digits=12, decimal_places=3, read_only=True)
    remainingQty = serializers.DecimalField(source='remaining_qty', max_digits=12, decimal_places=3, read_only=True)
    minStockLevel = serializers.DecimalField(source='min_stock_level', max_digits=12, decimal_places=3,
                                             required=False, allow_null=True, min_value=Decimal('0'))
    isLowStock = serializers.BooleanField(source='is_low_stock', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Material
        fields = ['id', 'name', 'sku', 'description', 'unit', 'unitCost', 'purchasedQty', 'usedQty',
                  'remainingQty', 'minStockLevel', 'isLowStock', 'createdAt', 'updatedAt']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Name is required')
        return value

    def validate_sku(self, value):
        return (value or '').strip() or None


class MaterialPurchaseSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=Decimal('0.001'))
    unitCost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0.01'))
    supplierName = serializers.CharField(required=False, allow_blank=True, max_length=200)
    invoiceNumber = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    purchaseDate = serializers.DateField(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class MaterialUsageSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3, min_value=Decimal('0.001'))
    usageDate = serializers.DateField(required=False, allow_null=True)
    usedFor = serializers.CharField(required=False, allow_blank=True, max_length=255)


class PurchaseRecordSerializer(serializers.ModelSerializer):
    materialId = serializers.IntegerField(source='material_id', read_only=True)
    unitCost = serializers.DecimalField(source='unit_cost', max_digits=12, decimal_places=2, read_only=True)
    totalCost = serializers.DecimalField(source='total_cost', max_digits=14, decimal_places=2, read_only=True)
    supplierName = serializers.CharField(source='supplier_name', read_only=True)
    invoiceNumber = serializers.CharField(source='invoice_number', read_only=True)
    purchaseDate = serializers.DateField(source='purchase_date', read_only=True)

    class Meta:
        model = MaterialPurchase
        fields = ['id', 'materialId', 'quantity', 'unitCost', 'totalCost', 'supplierName',
                  'invoiceNumber', 'purchaseDate', 'notes']


class UsageRecordSerializer(serializers.ModelSerializer):
    materialId = serializers.IntegerField(source='material_id', read_only=True)
    usageDate = serializers.DateField(source='usage_date', read_only=True)
    usedFor = serializers.CharField(source='used_for', read_only=True)

    class Meta:
        model = MaterialUsage
        fields = ['id', 'materialId', 'quantity', 'usageDate', 'usedFor']


class HistoryEntrySerializer(serializers.Serializer):
    type = serializers.CharField()
    id = serializers.IntegerField()
    quantity = serializers.DecimalField(max_digits=12, decimal_places=3)
    unitCost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    totalCost = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)
    supplierName = serializers.CharField(required=False)
    invoiceNumber = serializers.CharField(required=False, allow_null=True)
    notes = serializers.CharField(required=False)
    usedFor = serializers.CharField(required=False)
    date = serializers.DateField()
    recordedBy = serializers.CharField(allow_null=True)
    createdAt = serializers.DateTimeField()
