import django_filters
from django.db.models import F, Q
from .models import InventoryItem


class InventoryItemFilter(django_filters.FilterSet):
    """Filter for parts inventory using django-filter"""

    # Searches name, SKU and category
    search = django_filters.CharFilter(method='filter_search', label='Search')
    category = django_filters.CharFilter(field_name='category', lookup_expr='iexact')
    stock = django_filters.CharFilter(method='filter_stock', label='Stock status (low, out, alert)')
    location = django_filters.CharFilter(field_name='location', lookup_expr='icontains')

    class Meta:
        model = InventoryItem
        fields = ['search', 'category', 'stock', 'location']

    def filter_search(self, queryset, name, value):
        search = (value or '').strip()
        if not search:
            return queryset
        return queryset.filter(
            Q(name__icontains=search) |
            Q(sku__icontains=search) |
            Q(category__icontains=search)
        )

    def filter_stock(self, queryset, name, value):
        """'out' is stock <= 0, 'low' is 0 < stock <= threshold, 'alert' is either"""
        if value == 'out':
            return queryset.filter(stock_level__lte=0)
        if value == 'low':
            return queryset.filter(stock_level__gt=0, stock_level__lte=F('low_stock_threshold'))
        if value == 'alert':
            return queryset.filter(stock_level__lte=F('low_stock_threshold'))
        return queryset
