import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from buildflow.core.permissions import HasCompany
from buildflow.core.utils import error_response_body
from .filters import MaterialFilter
from .models import Material
from .serializers import (
    MaterialSerializer, MaterialPurchaseSerializer, MaterialUsageSerializer,
    PurchaseRecordSerializer, UsageRecordSerializer, HistoryEntrySerializer,
)
from . import services

logger = logging.getLogger('buildflow.inventory')


def _company_material(request, pk):
    return Material.objects.filter(pk=pk, company_id=request.user.company_id).first()


def _sku_taken(company_id, sku, exclude_pk=None):
    if not sku:
        return False
    queryset = Material.objects.filter(company_id=company_id, sku=sku)
    if exclude_pk is not None:
        queryset = queryset.exclude(pk=exclude_pk)
    return queryset.exists()


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, HasCompany])
def material_list_create(request):
    """List materials (search, sku filters) or create a material"""
    company_id = request.user.company_id

    if request.method == 'GET':
        queryset = Material.objects.filter(company_id=company_id)
        filterset = MaterialFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(error_response_body('Invalid filters', filterset.errors),
                            status=status.HTTP_400_BAD_REQUEST)
        return Response(MaterialSerializer(filterset.qs, many=True).data)

    serializer = MaterialSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(error_response_body('Invalid material data', serializer.errors),
                        status=status.HTTP_400_BAD_REQUEST)
    if _sku_taken(company_id, serializer.validated_data.get('sku')):
        return Response(error_response_body('SKU already exists'), status=status.HTTP_400_BAD_REQUEST)

    material = serializer.save(company_id=company_id)
    logger.info(f"Material {material.id} created for company {company_id}")
    return Response(MaterialSerializer(material).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, HasCompany])
def material_detail(request, pk):
    """Retrieve, update or delete a material"""
    material = _company_material(request, pk)
    if material is None:
        return Response(error_response_body('Material not found'), status=status.HTTP_404_NOT_FOUND)

    if request.method == 'GET':
        return Response(MaterialSerializer(material).data)

    if request.method == 'PATCH':
        serializer = MaterialSerializer(material, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(error_response_body('Invalid material data', serializer.errors),
                            status=status.HTTP_400_BAD_REQUEST)
        if _sku_taken(material.company_id, serializer.validated_data.get('sku'), exclude_pk=material.pk):
            return Response(error_response_body('SKU already exists'), status=status.HTTP_400_BAD_REQUEST)
        material = serializer.save()
        return Response(MaterialSerializer(material).data)

    material.delete()
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasCompany])
def material_purchase(request, pk):
    """Record a purchase and add its quantity to stock"""
    material = _company_material(request, pk)
    if material is None:
        return Response(error_response_body('Material not found'), status=status.HTTP_404_NOT_FOUND)

    serializer = MaterialPurchaseSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(error_response_body('Quantity and unit cost must be positive', serializer.errors),
                        status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        purchase = services.record_purchase(
            material, data['quantity'], data['unitCost'], user=request.user,
            supplier_name=data.get('supplierName', ''),
            invoice_number=data.get('invoiceNumber'),
            purchase_date=data.get('purchaseDate'),
            notes=data.get('notes', ''),
        )
    except Exception:
        logger.exception(f"Error recording purchase for material {pk}")
        return Response(error_response_body('Failed to record purchase'),
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    material.refresh_from_db()
    return Response({
        'purchase': PurchaseRecordSerializer(purchase).data,
        'material': MaterialSerializer(material).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, HasCompany])
def material_usage(request, pk):
    """Record usage; rejected when it exceeds the remaining stock"""
    material = _company_material(request, pk)
    if material is None:
        return Response(error_response_body('Material not found'), status=status.HTTP_404_NOT_FOUND)

    serializer = MaterialUsageSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(error_response_body('Quantity must be positive', serializer.errors),
                        status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    try:
        usage = services.record_usage(
            material, data['quantity'], user=request.user,
            usage_date=data.get('usageDate'), used_for=data.get('usedFor', ''),
        )
    except services.InsufficientStock as e:
        return Response(error_response_body(str(e)), status=status.HTTP_400_BAD_REQUEST)
    except Exception:
        logger.exception(f"Error recording usage for material {pk}")
        return Response(error_response_body('Failed to record usage'),
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    material.refresh_from_db()
    return Response({
        'usage': UsageRecordSerializer(usage).data,
        'material': MaterialSerializer(material).data,
    }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCompany])
def material_history(request, pk):
    """Purchases and usages of a material, newest first"""
    material = _company_material(request, pk)
    if material is None:
        return Response(error_response_body('Material not found'), status=status.HTTP_404_NOT_FOUND)
    entries = services.material_history(material)
    return Response({
        'material': MaterialSerializer(material).data,
        'history': HistoryEntrySerializer(entries, many=True).data,
    })
