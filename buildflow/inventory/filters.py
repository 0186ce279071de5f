import django_filters
from django.db.models import Q
from .models import Material


class MaterialFilter(django_filters.FilterSet):
    """Filter for the material list"""

    search = django_filters.CharFilter(method='filter_search')
    sku = django_filters.CharFilter(field_name='sku', lookup_expr='iexact')

    class Meta:
        model = Material
        fields = ['search', 'sku']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(name__icontains=value) | Q(sku__icontains=value) | Q(description__icontains=value)
        )
