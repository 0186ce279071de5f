"""
Test utilities and factories for creating test data
"""
import json
import random
import string
from decimal import Decimal
from urllib.parse import urlsplit

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from buildflow.core.models import Company
from buildflow.inventory.models import Material
from buildflow.pipeline.models import Stage, Card

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_company(name=None):
        """Create a test company"""
        if not name:
            name = f'Company_{TestDataFactory.random_string(6)}'
        return Company.objects.create(name=name, email=f'{name.lower()}@test.com')

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', company=None, role=User.ROLE_ADMIN):
        """Create a test user; a fresh company is created unless one is given"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        if company is None:
            company = TestDataFactory.create_company()
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            company=company,
            role=role,
        )

    @staticmethod
    def create_stage(company, name=None, color='#3b82f6', order=None):
        """Create a test stage, appended after the company's existing stages"""
        if not name:
            name = f'Stage_{TestDataFactory.random_string(6)}'
        if order is None:
            order = Stage.objects.filter(company=company).count()
        return Stage.objects.create(company=company, name=name, color=color, order=order)

    @staticmethod
    def create_card(stage, title=None, owner=None, order=None, status=Card.STATUS_ACTIVE, **fields):
        """Create a test card at the end of its stage"""
        if not title:
            title = f'Lead_{TestDataFactory.random_string(6)}'
        if order is None:
            order = Card.objects.filter(stage=stage, status=Card.STATUS_ACTIVE).count()
        return Card.objects.create(
            company=stage.company,
            stage=stage,
            owner=owner,
            title=title,
            order=order,
            status=status,
            **fields,
        )

    @staticmethod
    def create_board(company, stage_names=('New Lead', 'Contacted', 'Qualified'), cards_per_stage=2):
        """Create stages with cards; returns the stages in order"""
        stages = []
        for name in stage_names:
            stage = TestDataFactory.create_stage(company, name=name)
            for index in range(cards_per_stage):
                TestDataFactory.create_card(stage, title=f'{name} lead {index}')
            stages.append(stage)
        return stages

    @staticmethod
    def create_material(company, name=None, sku=None, unit='bag', unit_cost=Decimal('10.00'),
                        purchased_qty=Decimal('0'), used_qty=Decimal('0'), min_stock_level=None):
        """Create a test material"""
        if not name:
            name = f'Material_{TestDataFactory.random_string(6)}'
        return Material.objects.create(
            company=company,
            name=name,
            sku=sku,
            unit=unit,
            unit_cost=unit_cost,
            purchased_qty=purchased_qty,
            used_qty=used_qty,
            min_stock_level=min_stock_level,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()

    def request(self, **kwargs):
        """Run on-commit hooks (cache invalidation) as a committed request would"""
        with TestCase.captureOnCommitCallbacks(execute=True):
            return super().request(**kwargs)


class APIClientResponse:
    """``requests.Response``-like view of a test client response"""

    def __init__(self, response):
        self._response = response
        self.status_code = response.status_code

    def json(self):
        if not self._response.content:
            raise ValueError('Empty response body')
        return json.loads(self._response.content)


class APIClientSession:
    """
    Session adapter so PipelineClient can talk to the test server in-process.

    Mirrors the ``requests.Session.request`` signature the client uses.
    """

    def __init__(self, client=None):
        self.client = client or AuthenticatedAPIClient()
        self.cookies = {}
        self.calls = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append((method, url, json))
        path = urlsplit(url).path
        extra = {}
        for name, value in (headers or {}).items():
            if name.lower() == 'content-type':
                continue
            extra['HTTP_' + name.upper().replace('-', '_')] = value
        body = APIClientSession._encode(json)
        response = self.client.generic(method, path, body, content_type='application/json', **extra)
        token = response.cookies.get('auth-token')
        if token is not None:
            self.cookies['auth-token'] = token.value
        return APIClientResponse(response)

    @staticmethod
    def _encode(payload):
        if payload is None:
            return ''
        return json.dumps(payload)
