import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import F
from django.shortcuts import get_object_or_404

from fieldservice.core.utils import create_audit_log
from .filters import InventoryItemFilter
from .models import InventoryItem
from .serializers import InventoryItemSerializer, PartAllocationSerializer

logger = logging.getLogger(__name__)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def inventory_list_create(request):
    """List parts with search/category/stock filters or add a part"""
    if request.method == 'GET':
        item_filter = InventoryItemFilter(request.query_params, queryset=InventoryItem.objects.all().order_by('name'))
        serializer = InventoryItemSerializer(item_filter.qs, many=True)
        return Response(serializer.data)
    else:
        serializer = InventoryItemSerializer(data=request.data)
        if serializer.is_valid():
            item = serializer.save()
            create_audit_log(
                request=request,
                action='create',
                model_name='InventoryItem',
                object_id=str(item.id),
                object_name=item.name,
                object_reference=item.sku,
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def inventory_detail(request, pk):
    """Retrieve, update or delete a part"""
    item = get_object_or_404(InventoryItem, pk=pk)

    if request.method == 'GET':
        return Response(InventoryItemSerializer(item).data)
    elif request.method in ('PUT', 'PATCH'):
        old_price = item.sell_price
        serializer = InventoryItemSerializer(item, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            item = serializer.save()
            if item.sell_price != old_price:
                create_audit_log(
                    request=request,
                    action='update',
                    model_name='InventoryItem',
                    object_id=str(item.id),
                    object_name=item.name,
                    object_reference=item.sku,
                    changes={'sell_price': {'old': str(old_price), 'new': str(item.sell_price)}}
                )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        # Job items keep their description and price; only the link is cleared
        item.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='InventoryItem',
            object_id=str(pk),
            object_name=item.name,
            object_reference=item.sku,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def inventory_categories(request):
    """Distinct non-empty categories, sorted"""
    categories = (
        InventoryItem.objects.exclude(category='')
        .values_list('category', flat=True)
        .distinct()
        .order_by('category')
    )
    return Response(list(categories))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def inventory_allocations(request):
    """Parts used on jobs, newest first"""
    from fieldservice.jobs.models import JobItem

    queryset = (
        JobItem.objects.filter(type=JobItem.TYPE_PART)
        .select_related('inventory', 'job', 'job__customer')
        .order_by('-created_at')
    )
    inventory_id = request.query_params.get('inventory', None)
    if inventory_id:
        queryset = queryset.filter(inventory_id=inventory_id)
    serializer = PartAllocationSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def inventory_adjust_stock(request, pk):
    """Add or remove units: {"quantity": <signed int>, "reason": "..."}"""
    item = get_object_or_404(InventoryItem, pk=pk)
    try:
        quantity = int(request.data.get('quantity'))
    except (TypeError, ValueError):
        return Response({'error': 'quantity must be a whole number'}, status=status.HTTP_400_BAD_REQUEST)
    if quantity == 0:
        return Response({'error': 'quantity cannot be zero'}, status=status.HTTP_400_BAD_REQUEST)

    old_level = item.stock_level
    with transaction.atomic():
        InventoryItem.objects.filter(pk=item.pk).update(stock_level=F('stock_level') + quantity)
        item.refresh_from_db()

    create_audit_log(
        request=request,
        action='stock_adjust',
        model_name='InventoryItem',
        object_id=str(item.id),
        object_name=item.name,
        object_reference=item.sku,
        changes={
            'quantity': quantity,
            'stock_level': {'old': old_level, 'new': item.stock_level},
            'reason': request.data.get('reason', ''),
        }
    )
    logger.info(f"Stock adjusted for {item.sku}: {old_level} -> {item.stock_level}")
    return Response(InventoryItemSerializer(item).data)
