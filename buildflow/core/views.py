import logging
import math

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.db import transaction
from django.http import JsonResponse
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from .filters import ActivityFilter
from .models import Company, Activity
from .permissions import HasCompany
from .serializers import UserSerializer, RegisterSerializer, ActivitySerializer
from .utils import error_response_body

User = get_user_model()
logger = logging.getLogger(__name__)


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['company_id'] = user.company_id
        token['role'] = user.role
        return token


def set_auth_cookie(response, access_token):
    """Store the access token in the cookie the web client reads it from"""
    lifetime = settings.SIMPLE_JWT['ACCESS_TOKEN_LIFETIME']
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        str(access_token),
        max_age=int(lifetime.total_seconds()),
        httponly=False,
        samesite='Lax',
        secure=not settings.DEBUG,
    )
    return response


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        if response.status_code == status.HTTP_200_OK and 'access' in response.data:
            set_auth_cookie(response, response.data['access'])
        return response


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        if response.status_code == status.HTTP_200_OK and 'access' in response.data:
            set_auth_cookie(response, response.data['access'])
        return response


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """Create a company, its admin user and the default pipeline stages"""
    from buildflow.pipeline.services import create_default_stages

    serializer = RegisterSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(error_response_body('Invalid registration data', serializer.errors),
                        status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    with transaction.atomic():
        company = Company.objects.create(name=data['companyName'], email=data['email'])
        user = User.objects.create_user(
            username=data['username'],
            email=data['email'],
            password=data['password'],
            first_name=data['firstName'],
            last_name=data['lastName'],
            company=company,
            role=User.ROLE_ADMIN,
        )
        create_default_stages(company)

    logger.info(f"Registered company '{company.name}' (ID: {company.id}) with admin {user.username}")

    token = CustomTokenObtainPairSerializer.get_token(user)
    response = Response({
        'user': UserSerializer(user).data,
        'access': str(token.access_token),
        'refresh': str(token),
    }, status=status.HTTP_201_CREATED)
    return set_auth_cookie(response, token.access_token)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with company and role"""
    return Response(UserSerializer(request.user).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasCompany])
def activity_list(request):
    """Paginated company activity feed with optional filters"""
    try:
        page = max(int(request.query_params.get('page', 1)), 1)
        limit = min(max(int(request.query_params.get('limit', 50)), 1), 200)
    except (TypeError, ValueError):
        return Response(error_response_body('page and limit must be integers'),
                        status=status.HTTP_400_BAD_REQUEST)

    queryset = Activity.objects.filter(company_id=request.user.company_id).select_related('user', 'card')
    filterset = ActivityFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response(error_response_body('Invalid filters', filterset.errors),
                        status=status.HTTP_400_BAD_REQUEST)
    queryset = filterset.qs

    total_count = queryset.count()
    offset = (page - 1) * limit
    activities = queryset[offset:offset + limit]

    return Response({
        'activities': ActivitySerializer(activities, many=True).data,
        'pagination': {
            'page': page,
            'limit': limit,
            'totalCount': total_count,
            'totalPages': math.ceil(total_count / limit) if total_count else 0,
        },
    })


def health(request):
    return JsonResponse({'status': 'ok'})
