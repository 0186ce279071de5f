from decimal import Decimal
from rest_framework import serializers
from .models import Stage, Card


class CardSummarySerializer(serializers.ModelSerializer):
    """Card as it appears nested in a board column"""
    stageId = serializers.IntegerField(source='stage_id', read_only=True)
    contactName = serializers.CharField(source='contact_name', read_only=True)
    contactEmail = serializers.CharField(source='contact_email', read_only=True)
    contactPhone = serializers.CharField(source='contact_phone', read_only=True)

    class Meta:
        model = Card
        fields = ['id', 'title', 'contactName', 'contactEmail', 'contactPhone', 'budget',
                  'priority', 'timeline', 'stageId', 'order']


class CardSerializer(serializers.ModelSerializer):
    """Full card; accepts the camelCase payload the web client sends"""
    stageId = serializers.PrimaryKeyRelatedField(source='stage', queryset=Stage.objects.all())
    contactName = serializers.CharField(source='contact_name', required=False, allow_blank=True, max_length=200)
    contactEmail = serializers.EmailField(source='contact_email', required=False, allow_blank=True)
    contactPhone = serializers.CharField(source='contact_phone', required=False, allow_blank=True, max_length=30)
    projectAddress = serializers.CharField(source='project_address', required=False, allow_blank=True, max_length=500)
    budget = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
    ownerId = serializers.IntegerField(source='owner_id', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Card
        fields = ['id', 'title', 'description', 'contactName', 'contactEmail', 'contactPhone',
                  'projectAddress', 'budget', 'priority', 'timeline', 'status', 'stageId', 'order',
                  'ownerId', 'createdAt', 'updatedAt']
        read_only_fields = ['order', 'status']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Stage choices are limited to the requesting user's company
        company_id = self.context.get('company_id')
        if company_id is not None:
            self.fields['stageId'].queryset = Stage.objects.filter(company_id=company_id)

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Title is required')
        return value

    def validate_budget(self, value):
        if value is not None and value <= Decimal('0'):
            raise serializers.ValidationError('Budget must be positive')
        return value


class StageSerializer(serializers.ModelSerializer):
    class Meta:
        model = Stage
        fields = ['id', 'name', 'color', 'order']
        read_only_fields = ['order']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Name is required')
        return value


class StageBoardSerializer(serializers.ModelSerializer):
    """Stage with its ACTIVE cards in board order"""
    cards = serializers.SerializerMethodField()

    class Meta:
        model = Stage
        fields = ['id', 'name', 'color', 'order', 'cards']

    def get_cards(self, obj):
        # Uses the prefetched, filtered list from the board query
        cards = getattr(obj, 'active_cards', None)
        if cards is None:
            cards = obj.cards.filter(status=Card.STATUS_ACTIVE).order_by('order', 'id')
        return CardSummarySerializer(cards, many=True).data


class CardMoveSerializer(serializers.Serializer):
    stageId = serializers.IntegerField(required=False, allow_null=True)
    order = serializers.IntegerField(required=False, allow_null=True, min_value=0)


class StageReorderSerializer(serializers.Serializer):
    stageIds = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
