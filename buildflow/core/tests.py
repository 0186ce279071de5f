"""
Test suite for the core app
Tests: registration, login cookie, cookie authentication, current user and the activity feed
"""
from django.test import TestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken

from buildflow.core.models import Activity, Company, User
from buildflow.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from buildflow.core.utils import create_activity
from buildflow.pipeline.models import Stage


class RegistrationTests(TestCase):
    """Sign-up creates the tenant, its admin and the default pipeline"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.payload = {
            'email': 'owner@acme-build.com',
            'password': 'Sturdy-Beam-42',
            'firstName': 'Dana',
            'lastName': 'Builder',
            'companyName': 'Acme Build',
        }

    def test_register_creates_company_admin_and_stages(self):
        response = self.client.post('/api/auth/register/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('auth-token', response.cookies)

        company = Company.objects.get(name='Acme Build')
        user = User.objects.get(email='owner@acme-build.com')
        self.assertEqual(user.company, company)
        self.assertEqual(user.role, User.ROLE_ADMIN)

        stages = list(Stage.objects.filter(company=company).order_by('order'))
        self.assertEqual([s.name for s in stages],
                         ['New Lead', 'Contacted', 'Qualified', 'Proposal', 'Negotiation', 'Won'])
        self.assertEqual([s.order for s in stages], list(range(6)))

    def test_register_duplicate_email(self):
        self.client.post('/api/auth/register/', self.payload, format='json')
        response = self.client.post('/api/auth/register/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Company.objects.count(), 1)

    def test_register_missing_company_name(self):
        self.payload.pop('companyName')
        response = self.client.post('/api/auth/register/', self.payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('error', response.data)


class AuthenticationTests(TestCase):
    """Login, cookie fallback and the current user endpoint"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user(username='dana', password='testpass123')

    def test_login_sets_auth_cookie(self):
        response = self.client.post('/api/auth/login/', {'username': 'dana', 'password': 'testpass123'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['username'], 'dana')
        self.assertEqual(response.cookies['auth-token'].value, response.data['access'])

    def test_login_wrong_password(self):
        response = self.client.post('/api/auth/login/', {'username': 'dana', 'password': 'nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_carries_company_claims(self):
        response = self.client.post('/api/auth/login/', {'username': 'dana', 'password': 'testpass123'},
                                    format='json')
        refresh = RefreshToken(response.data['refresh'])
        self.assertEqual(refresh['company_id'], self.user.company_id)
        self.assertEqual(refresh['role'], User.ROLE_ADMIN)

    def test_cookie_authenticates_without_header(self):
        token = RefreshToken.for_user(self.user).access_token
        self.client.cookies['auth-token'] = str(token)
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'dana')

    def test_me_requires_authentication(self):
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_returns_company_and_role(self):
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], User.ROLE_ADMIN)
        self.assertEqual(response.data['company']['id'], self.user.company_id)

    def test_refresh_sets_cookie(self):
        refresh = RefreshToken.for_user(self.user)
        response = self.client.post('/api/auth/refresh/', {'refresh': str(refresh)}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('auth-token', response.cookies)


class ActivityFeedTests(TestCase):
    """Paginated, filtered, company-scoped activity feed"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.company = self.user.company
        self.stage = TestDataFactory.create_stage(self.company, name='New Lead')
        self.card = TestDataFactory.create_card(self.stage, title='Kitchen remodel')
        self.client.authenticate_user(self.user)

        create_activity(company=self.company, type='card_created', description='Created new lead: Kitchen remodel',
                        user=self.user, card=self.card)
        create_activity(company=self.company, type='card_moved', description='Moved card from New Lead to Won',
                        user=self.user, card=self.card)
        create_activity(company=self.company, type='stage_created', description='Created stage Won')

        other = TestDataFactory.create_company()
        create_activity(company=other, type='card_created', description='Created new lead: Elsewhere')

    def test_feed_is_company_scoped(self):
        response = self.client.get('/api/activities/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pagination']['totalCount'], 3)
        descriptions = [a['description'] for a in response.data['activities']]
        self.assertNotIn('Created new lead: Elsewhere', descriptions)

    def test_feed_newest_first(self):
        response = self.client.get('/api/activities/')
        self.assertEqual(response.data['activities'][0]['type'], 'stage_created')

    def test_filter_by_type(self):
        response = self.client.get('/api/activities/', {'type': 'card_moved'})
        self.assertEqual(response.data['pagination']['totalCount'], 1)
        self.assertEqual(response.data['activities'][0]['card_title'], 'Kitchen remodel')

    def test_filter_by_card_and_search(self):
        response = self.client.get('/api/activities/', {'cardId': self.card.id, 'search': 'moved'})
        self.assertEqual(response.data['pagination']['totalCount'], 1)

    def test_pagination(self):
        response = self.client.get('/api/activities/', {'page': 2, 'limit': 2})
        pagination = response.data['pagination']
        self.assertEqual(pagination['page'], 2)
        self.assertEqual(pagination['totalPages'], 2)
        self.assertEqual(len(response.data['activities']), 1)

    def test_invalid_page(self):
        response = self.client.get('/api/activities/', {'page': 'first'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_activity_skips_missing_fields(self):
        self.assertIsNone(create_activity(company=self.company, type='card_created', description=''))
        self.assertEqual(Activity.objects.filter(company=self.company).count(), 3)


class HealthTests(TestCase):
    def test_health(self):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'status': 'ok'})
