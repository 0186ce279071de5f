import django_filters
from .models import Activity


class ActivityFilter(django_filters.FilterSet):
    """Filter for the company activity feed using django-filter"""

    type = django_filters.CharFilter(field_name='type', lookup_expr='exact')
    userId = django_filters.NumberFilter(field_name='user_id', lookup_expr='exact')
    cardId = django_filters.NumberFilter(field_name='card_id', lookup_expr='exact')
    search = django_filters.CharFilter(field_name='description', lookup_expr='icontains')
    # Date-only bounds are inclusive on both ends
    startDate = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    endDate = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = Activity
        fields = ['type', 'userId', 'cardId', 'search', 'startDate', 'endDate']
