from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import Company, User, Activity


class CompanySerializer(serializers.ModelSerializer):
    class Meta:
        model = Company
        fields = ['id', 'name', 'email', 'app_name', 'website', 'created_at']
        read_only_fields = ['created_at']


class UserSerializer(serializers.ModelSerializer):
    company = CompanySerializer(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'role', 'company',
                  'is_active', 'last_login', 'created_at', 'updated_at']
        read_only_fields = ['role', 'last_login', 'created_at', 'updated_at']


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name']


class RegisterSerializer(serializers.Serializer):
    """Sign-up creates a new company with its first (admin) user"""
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    firstName = serializers.CharField(max_length=150)
    lastName = serializers.CharField(max_length=150)
    companyName = serializers.CharField(max_length=200)
    username = serializers.CharField(max_length=150, required=False)

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError('User already exists')
        return value

    def validate(self, attrs):
        username = attrs.get('username') or attrs['email']
        if User.objects.filter(username=username).exists():
            raise serializers.ValidationError({'username': 'User already exists'})
        attrs['username'] = username
        validate_password(attrs['password'])
        return attrs


class ActivitySerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)
    card_title = serializers.CharField(source='card.title', read_only=True, default=None)

    class Meta:
        model = Activity
        fields = ['id', 'type', 'description', 'card', 'card_title', 'user', 'metadata', 'created_at']
