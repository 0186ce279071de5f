"""
Test suite for the pipeline module
Tests: board reducer, local board state, dropdown/menu state, server ordering,
company isolation, board cache and the board controller
"""
import copy
from io import StringIO

import requests
from django.core.cache import cache
from django.core.management import call_command
from django.db import transaction
from django.test import TestCase, TransactionTestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken

from buildflow.core.models import Activity, User
from buildflow.core.test_utils import TestDataFactory, AuthenticatedAPIClient, APIClientSession
from buildflow.pipeline import services
from buildflow.pipeline.board import (
    BoardState, CardItem, DragLocation, DropResult, DropdownState, MenuState, StageColumn, apply_move,
)
from buildflow.pipeline.cache import get_board_cache_key, get_cached_board
from buildflow.pipeline.client import BoardController, Notifier, PipelineClient
from buildflow.pipeline.exceptions import InvalidMove, PersistenceFailed
from buildflow.pipeline.models import Stage, Card


def make_board():
    """Three local columns: a=[1,2,3], b=[4], c=[]"""
    return [
        StageColumn(id='a', name='New Lead', order=0, cards=[
            CardItem(id=1, title='One', stage_id='a', order=0),
            CardItem(id=2, title='Two', stage_id='a', order=1),
            CardItem(id=3, title='Three', stage_id='a', order=2),
        ]),
        StageColumn(id='b', name='Contacted', order=1, cards=[
            CardItem(id=4, title='Four', stage_id='b', order=0),
        ]),
        StageColumn(id='c', name='Won', order=2, cards=[]),
    ]


def drop(card_id, source, source_index, destination=None, destination_index=None):
    return DropResult(
        draggable_id=card_id,
        source=DragLocation(source, source_index),
        destination=DragLocation(destination, destination_index) if destination is not None else None,
    )


def ids(stages):
    return {s.id: s.card_ids for s in stages}


class ApplyMoveTests(TestCase):
    """The pure drag-and-drop reducer"""

    def test_reorder_within_stage(self):
        result = apply_move(make_board(), drop(1, 'a', 0, 'a', 2))
        self.assertEqual(ids(result)['a'], [2, 3, 1])

    def test_move_across_stages(self):
        result = apply_move(make_board(), drop(2, 'a', 1, 'b', 0))
        self.assertEqual(ids(result), {'a': [1, 3], 'b': [2, 4], 'c': []})
        moved = result[1].cards[0]
        self.assertEqual(moved.stage_id, 'b')

    def test_move_into_empty_stage(self):
        result = apply_move(make_board(), drop(4, 'b', 0, 'c', 0))
        self.assertEqual(ids(result), {'a': [1, 2, 3], 'b': [], 'c': [4]})

    def test_orders_are_contiguous_after_move(self):
        result = apply_move(make_board(), drop(1, 'a', 0, 'b', 1))
        for stage in result:
            self.assertEqual([c.order for c in stage.cards], list(range(len(stage.cards))))

    def test_card_multiset_preserved(self):
        before = make_board()
        result = apply_move(before, drop(3, 'a', 2, 'b', 0))
        all_before = sorted(c for s in before for c in s.card_ids)
        all_after = sorted(c for s in result for c in s.card_ids)
        self.assertEqual(all_before, all_after)

    def test_input_not_mutated(self):
        before = make_board()
        pristine = copy.deepcopy(before)
        apply_move(before, drop(1, 'a', 0, 'c', 0))
        self.assertEqual(before, pristine)

    def test_drop_outside_board_is_noop(self):
        before = make_board()
        result = apply_move(before, drop(1, 'a', 0))
        self.assertEqual(ids(result), ids(before))

    def test_drop_on_same_slot_is_noop(self):
        before = make_board()
        result = apply_move(before, drop(2, 'a', 1, 'a', 1))
        self.assertEqual(ids(result), ids(before))

    def test_wrong_source_index_leaves_board_unchanged(self):
        before = make_board()
        result = apply_move(before, drop(1, 'a', 2, 'b', 0))
        self.assertEqual(ids(result), ids(before))

    def test_strict_mode_raises_on_invalid_drop(self):
        with self.assertRaises(InvalidMove):
            apply_move(make_board(), drop(1, 'a', 2, 'b', 0), strict=True)
        with self.assertRaises(InvalidMove):
            apply_move(make_board(), drop(1, 'a', 0, 'zz', 0), strict=True)
        with self.assertRaises(InvalidMove):
            apply_move(make_board(), drop(1, 'a', 0, 'b', 5), strict=True)

    def test_drop_result_from_dict(self):
        result = DropResult.from_dict({
            'draggableId': 7,
            'source': {'droppableId': 1, 'index': '0'},
            'destination': {'droppableId': 2, 'index': 3},
        })
        self.assertEqual(result.source.index, 0)
        self.assertEqual(result.destination, DragLocation(2, 3))
        self.assertTrue(DropResult.from_dict({'draggableId': 7, 'source': {'droppableId': 1, 'index': 0},
                                              'destination': None}).is_noop)


class BoardStateTests(TestCase):
    """Local mirror keyed by stage id"""

    def test_replace_orders_stages(self):
        state = BoardState([
            {'id': 2, 'name': 'Won', 'order': 1, 'cards': []},
            {'id': 1, 'name': 'New Lead', 'order': 0, 'cards': [{'id': 9, 'title': 'Deck', 'stageId': 1}]},
        ])
        self.assertEqual([s.id for s in state.stages], [1, 2])
        self.assertEqual(state.stage_of_card(9).id, 1)
        self.assertEqual(state.card(9).title, 'Deck')

    def test_snapshot_restore(self):
        state = BoardState(make_board())
        snapshot = state.snapshot()
        self.assertTrue(state.apply_move(drop(1, 'a', 0, 'c', 0)))
        self.assertEqual(state.as_lists()['c'], [1])
        state.restore(snapshot)
        self.assertEqual(state.as_lists(), {'a': [1, 2, 3], 'b': [4], 'c': []})

    def test_noop_move_reports_no_change(self):
        state = BoardState(make_board())
        version = state.version
        self.assertFalse(state.apply_move(drop(1, 'a', 0, 'a', 0)))
        self.assertEqual(state.version, version)


class DropdownStateTests(TestCase):
    """At most one stage dropdown open"""

    def test_opening_one_closes_the_other(self):
        dropdowns = DropdownState()
        dropdowns.open('a')
        dropdowns.open('b')
        self.assertFalse(dropdowns.is_open('a'))
        self.assertTrue(dropdowns.is_open('b'))

    def test_toggle(self):
        dropdowns = DropdownState()
        dropdowns.toggle('a')
        self.assertTrue(dropdowns.is_open('a'))
        dropdowns.toggle('a')
        self.assertIsNone(dropdowns.open_dropdown_id)

    def test_outside_click_closes(self):
        dropdowns = DropdownState()
        dropdowns.open('a')
        dropdowns.handle_document_click('a')
        self.assertTrue(dropdowns.is_open('a'))
        dropdowns.handle_document_click('somewhere-else')
        self.assertIsNone(dropdowns.open_dropdown_id)

    def test_custom_containment(self):
        dropdowns = DropdownState()
        dropdowns.open('a')
        dropdowns.handle_document_click('a:rename-button', contains=lambda panel, target: target.startswith(panel))
        self.assertTrue(dropdowns.is_open('a'))

    def test_card_menus_are_independent(self):
        menus = MenuState()
        menus.toggle(1)
        menus.toggle(2)
        self.assertEqual(sorted(menus.open_menus()), [1, 2])
        menus.handle_document_click(1)
        self.assertEqual(menus.open_menus(), [1])


class PipelineAPITestCase(TestCase):
    """Shared setup: an admin with a three-stage board"""

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_user()
        self.company = self.user.company
        self.stages = TestDataFactory.create_board(self.company, cards_per_stage=2)
        self.client.authenticate_user(self.user)

    def card_ids(self, stage):
        return list(Card.objects.filter(stage=stage, status=Card.STATUS_ACTIVE)
                    .order_by('order').values_list('id', flat=True))

    def orders(self, stage):
        return list(Card.objects.filter(stage=stage, status=Card.STATUS_ACTIVE)
                    .order_by('order').values_list('order', flat=True))


class BoardAPITests(PipelineAPITestCase):

    def test_board_lists_stages_with_active_cards(self):
        archived = TestDataFactory.create_card(self.stages[0], title='Old', status=Card.STATUS_ARCHIVED)
        response = self.client.get('/api/stage/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['name'] for s in response.data], ['New Lead', 'Contacted', 'Qualified'])
        first = response.data[0]
        self.assertEqual(len(first['cards']), 2)
        self.assertNotIn(archived.id, [c['id'] for c in first['cards']])
        self.assertEqual(first['cards'][0]['stageId'], self.stages[0].id)

    def test_flat_stage_list(self):
        response = self.client.get('/api/stages/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertNotIn('cards', response.data[0])

    def test_board_requires_authentication(self):
        self.client.logout()
        response = self.client.get('/api/stage/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_board_is_cached_and_invalidated(self):
        self.client.get('/api/stage/')
        self.assertIsNotNone(get_cached_board(self.company.id))

        card = Card.objects.filter(stage=self.stages[0]).order_by('order').first()
        self.client.patch(f'/api/card/{card.id}/move/', {'stageId': self.stages[2].id, 'order': 0}, format='json')
        self.assertIsNone(get_cached_board(self.company.id))

        response = self.client.get('/api/stage/')
        self.assertEqual(response.data[2]['cards'][0]['id'], card.id)

    def test_card_edit_invalidates_board(self):
        self.client.get('/api/stage/')
        card = Card.objects.filter(stage=self.stages[0]).first()
        self.client.patch(f'/api/card/{card.id}/', {'title': 'Renamed'}, format='json')
        response = self.client.get('/api/stage/')
        titles = [c['title'] for c in response.data[0]['cards']]
        self.assertIn('Renamed', titles)


class StageAPITests(PipelineAPITestCase):

    def test_create_stage_appends(self):
        response = self.client.post('/api/stage/', {'name': 'Won', 'color': '#10b981'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['order'], 3)

    def test_create_stage_requires_name_and_color(self):
        response = self.client.post('/api/stage/', {'name': '  '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Name and color are required')

    def test_member_cannot_manage_stages(self):
        member = TestDataFactory.create_user(company=self.company, role=User.ROLE_MEMBER)
        self.client.authenticate_user(member)
        response = self.client.post('/api/stage/', {'name': 'Won', 'color': '#10b981'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.delete(f'/api/stage/{self.stages[2].id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_rename_stage(self):
        response = self.client.put(f'/api/stage/{self.stages[0].id}/', {'name': ' Inbound '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], 'Inbound')
        self.assertTrue(Activity.objects.filter(company=self.company, type='stage_updated').exists())

    def test_rename_stage_requires_name(self):
        response = self.client.put(f'/api/stage/{self.stages[0].id}/', {'name': ''}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_stage_with_cards_rejected(self):
        response = self.client.delete(f'/api/stage/{self.stages[0].id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot delete stage with active cards. Move cards first.')
        self.assertTrue(Stage.objects.filter(pk=self.stages[0].id).exists())

    def test_delete_empty_stage_renumbers(self):
        empty = self.stages[1]
        Card.objects.filter(stage=empty).update(status=Card.STATUS_ARCHIVED)
        response = self.client.delete(f'/api/stage/{empty.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Stage deleted successfully')
        remaining = Stage.objects.filter(company=self.company).order_by('order')
        self.assertEqual([s.order for s in remaining], [0, 1])

    def test_reorder_stages(self):
        new_order = [self.stages[2].id, self.stages[0].id, self.stages[1].id]
        response = self.client.post('/api/stage/reorder/', {'stageIds': new_order}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['id'] for s in response.data], new_order)
        self.assertEqual(Stage.objects.get(pk=self.stages[2].id).order, 0)

    def test_reorder_requires_every_stage(self):
        response = self.client.post('/api/stage/reorder/', {'stageIds': [self.stages[0].id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class CardAPITests(PipelineAPITestCase):

    def test_create_card_appends_to_stage(self):
        response = self.client.post('/api/card/', {
            'title': 'Bathroom refit',
            'stageId': self.stages[1].id,
            'contactName': 'Sam Lee',
            'budget': '15000.00',
            'priority': 'HIGH',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['order'], 2)
        self.assertEqual(response.data['contactName'], 'Sam Lee')
        self.assertTrue(Activity.objects.filter(type='card_created',
                                                description='Created new lead: Bathroom refit').exists())

    def test_create_card_requires_title_and_stage(self):
        response = self.client.post('/api/card/', {'title': 'No stage'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Title and stage are required')

    def test_create_card_rejects_non_positive_budget(self):
        response = self.client.post('/api/card/', {'title': 'Deck', 'stageId': self.stages[0].id, 'budget': '0'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_card_in_other_company_stage(self):
        other_stage = TestDataFactory.create_stage(TestDataFactory.create_company())
        response = self.client.post('/api/card/', {'title': 'Deck', 'stageId': other_stage.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid stage')

    def test_delete_card_closes_gap(self):
        first = self.card_ids(self.stages[0])[0]
        response = self.client.delete(f'/api/card/{first}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(self.orders(self.stages[0]), [0])


class CardMoveAPITests(PipelineAPITestCase):

    def test_move_across_stages_renumbers_both(self):
        source, destination = self.stages[0], self.stages[1]
        card_id = self.card_ids(source)[0]
        response = self.client.patch(f'/api/card/{card_id}/move/', {'stageId': destination.id, 'order': 1},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stageId'], destination.id)
        self.assertEqual(self.orders(source), [0])
        self.assertEqual(self.orders(destination), [0, 1, 2])
        self.assertEqual(self.card_ids(destination)[1], card_id)

    def test_move_within_stage(self):
        stage = self.stages[0]
        first, second = self.card_ids(stage)
        self.client.patch(f'/api/card/{first}/move/', {'stageId': stage.id, 'order': 1}, format='json')
        self.assertEqual(self.card_ids(stage), [second, first])
        self.assertEqual(self.orders(stage), [0, 1])

    def test_order_is_clamped_and_defaults_to_end(self):
        destination = self.stages[2]
        card_a, card_b = self.card_ids(self.stages[0])
        self.client.patch(f'/api/card/{card_a}/move/', {'stageId': destination.id, 'order': 99}, format='json')
        self.client.patch(f'/api/card/{card_b}/move/', {'stageId': destination.id}, format='json')
        self.assertEqual(self.card_ids(destination)[-2:], [card_a, card_b])
        self.assertEqual(self.orders(destination), [0, 1, 2, 3])

    def test_move_writes_activity(self):
        card_id = self.card_ids(self.stages[0])[0]
        self.client.patch(f'/api/card/{card_id}/move/', {'stageId': self.stages[1].id, 'order': 0}, format='json')
        activity = Activity.objects.get(type='card_moved', card_id=card_id)
        self.assertEqual(activity.description, 'Moved card from New Lead to Contacted')

    def test_move_requires_stage(self):
        card_id = self.card_ids(self.stages[0])[0]
        response = self.client.patch(f'/api/card/{card_id}/move/', {'order': 0}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Stage ID is required')

    def test_move_archived_card_rejected(self):
        card = TestDataFactory.create_card(self.stages[0], status=Card.STATUS_ARCHIVED)
        response = self.client.patch(f'/api/card/{card.id}/move/', {'stageId': self.stages[1].id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_company_card_not_found(self):
        other_company = TestDataFactory.create_company()
        other_stage = TestDataFactory.create_stage(other_company)
        other_card = TestDataFactory.create_card(other_stage)
        response = self.client.patch(f'/api/card/{other_card.id}/move/', {'stageId': self.stages[0].id},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        other_card.refresh_from_db()
        self.assertEqual(other_card.stage_id, other_stage.id)
        self.assertEqual(self.client.get(f'/api/card/{other_card.id}/').status_code, status.HTTP_404_NOT_FOUND)

    def test_move_into_other_company_stage_rejected(self):
        other_stage = TestDataFactory.create_stage(TestDataFactory.create_company())
        card_id = self.card_ids(self.stages[0])[0]
        response = self.client.patch(f'/api/card/{card_id}/move/', {'stageId': other_stage.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid stage')
        self.assertEqual(Card.objects.get(pk=card_id).stage_id, self.stages[0].id)


class RepairBoardOrderCommandTests(PipelineAPITestCase):

    def test_repairs_gaps(self):
        Card.objects.filter(stage=self.stages[0]).update(order=7)
        Stage.objects.filter(pk=self.stages[2].id).update(order=9)
        call_command('repair_board_order', stdout=StringIO())
        self.assertEqual(self.orders(self.stages[0]), [0, 1])
        self.assertEqual(Stage.objects.get(pk=self.stages[2].id).order, 2)

    def test_dry_run_changes_nothing(self):
        Card.objects.filter(stage=self.stages[0]).update(order=7)
        call_command('repair_board_order', '--dry-run', stdout=StringIO())
        self.assertEqual(self.orders(self.stages[0]), [7, 7])


class FailingSession:
    """Session whose every request fails at the transport level"""

    def __init__(self):
        self.cookies = {}
        self.calls = []

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append((method, url, json))
        raise requests.ConnectionError('connection refused')


class NonJSONResponse:
    status_code = 200

    def json(self):
        raise ValueError('Expecting value: line 1 column 1 (char 0)')


class HTMLSession(FailingSession):
    """Session answering every request with a 200 HTML page"""

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append((method, url, json))
        return NonJSONResponse()


class BoardControllerTests(PipelineAPITestCase):
    """Controller driving the real API through the in-process session"""

    def setUp(self):
        super().setUp()
        self.session = APIClientSession()
        token = str(RefreshToken.for_user(self.user).access_token)
        self.api = PipelineClient(base_url='http://testserver/api', token=token, session=self.session)
        self.notifier = Notifier()
        self.controller = BoardController(self.api, self.notifier)
        self.assertTrue(self.controller.refresh())

    def test_refresh_loads_board(self):
        self.assertEqual([s.name for s in self.controller.state.stages], ['New Lead', 'Contacted', 'Qualified'])

    def test_move_persists_and_refetches(self):
        first, second, _ = self.controller.state.stages
        card_id = first.cards[0].id
        published = []
        self.controller.subscribe(lambda state: published.append(state.as_lists()))

        result = self.controller.move_card({
            'draggableId': card_id,
            'source': {'droppableId': first.id, 'index': 0},
            'destination': {'droppableId': second.id, 'index': 0},
        })

        self.assertTrue(result)
        self.assertEqual(published[0][second.id][0], card_id)
        self.assertEqual(self.controller.state.stage(second.id).card_ids[0], card_id)
        self.assertEqual(Card.objects.get(pk=card_id).stage_id, second.id)

    def test_failed_move_rolls_back(self):
        before = self.controller.state.as_lists()
        first, second, _ = self.controller.state.stages
        failing = BoardController(PipelineClient(base_url='http://testserver/api', token='x',
                                                 session=FailingSession()),
                                  self.notifier, state=self.controller.state)

        result = failing.move_card(drop(first.cards[0].id, first.id, 0, second.id, 0))

        self.assertFalse(result)
        self.assertEqual(failing.state.as_lists(), before)
        self.assertEqual(self.notifier.last.message, 'Failed to move card')
        self.assertEqual(self.notifier.last.level, 'error')

    def test_non_json_success_rolls_back(self):
        before = self.controller.state.as_lists()
        first, second, _ = self.controller.state.stages
        session = HTMLSession()
        html = BoardController(PipelineClient(base_url='http://testserver/api', token='x', session=session),
                               self.notifier, state=self.controller.state)

        result = html.move_card(drop(first.cards[0].id, first.id, 0, second.id, 0))

        self.assertFalse(result)
        self.assertEqual(len(session.calls), 1)
        self.assertEqual(html.state.as_lists(), before)
        self.assertEqual(self.notifier.last.message, 'Failed to move card')

    def test_rejected_move_rolls_back(self):
        before = self.controller.state.as_lists()
        first, second, _ = self.controller.state.stages
        Stage.objects.filter(pk=second.id).delete()

        result = self.controller.move_card(drop(first.cards[0].id, first.id, 0, second.id, 0))

        self.assertFalse(result)
        self.assertEqual(self.controller.state.as_lists(), before)

    def test_rename_guards_issue_no_request(self):
        first = self.controller.state.stages[0]
        calls = len(self.session.calls)
        self.assertFalse(self.controller.rename_stage(first.id, '   '))
        self.assertEqual(self.notifier.last.message, 'Stage name cannot be empty')
        self.assertFalse(self.controller.rename_stage(first.id, first.name))
        self.assertEqual(len(self.session.calls), calls)

    def test_rename_stage(self):
        first = self.controller.state.stages[0]
        self.controller.dropdowns.open(first.id)
        self.assertTrue(self.controller.rename_stage(first.id, 'Inbound'))
        self.assertEqual(self.notifier.last.message, 'Stage updated successfully')
        self.assertIsNone(self.controller.dropdowns.open_dropdown_id)
        self.assertEqual(self.controller.state.stage(first.id).name, 'Inbound')

    def test_delete_stage_with_cards_issues_no_request(self):
        first = self.controller.state.stages[0]
        calls = len(self.session.calls)
        self.assertFalse(self.controller.delete_stage(first.id))
        self.assertEqual(self.notifier.last.message, 'Cannot delete stage with cards. Move cards first.')
        self.assertEqual(len(self.session.calls), calls)

    def test_delete_stage_honours_confirmation(self):
        self.controller.create_stage('Lost', '#ef4444')
        lost = self.controller.state.stages[-1]
        calls = len(self.session.calls)
        self.assertFalse(self.controller.delete_stage(lost.id, confirm=lambda stage: False))
        self.assertEqual(len(self.session.calls), calls)

        self.assertTrue(self.controller.delete_stage(lost.id, confirm=lambda stage: True))
        self.assertEqual(self.notifier.last.message, 'Stage deleted successfully')
        self.assertIsNone(self.controller.state.stage(lost.id))

    def test_create_card_defaults_to_first_stage(self):
        card = self.controller.create_card('Garage conversion', budget='25000')
        self.assertEqual(card['stageId'], self.controller.state.stages[0].id)
        self.assertEqual(self.notifier.last.message, 'Lead created successfully!')
        self.assertIn(card['id'], self.controller.state.stages[0].card_ids)

    def test_create_card_rejects_bad_budget(self):
        calls = len(self.session.calls)
        self.assertIsNone(self.controller.create_card('Garage conversion', budget='-5'))
        self.assertEqual(self.notifier.last.message, 'Budget must be positive')
        self.assertEqual(len(self.session.calls), calls)

    def test_persistence_failure_carries_status(self):
        with self.assertRaises(PersistenceFailed) as ctx:
            self.api.move_card(999999, self.controller.state.stages[0].id, 0)
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(str(ctx.exception), 'Card not found')


class ServiceTests(PipelineAPITestCase):

    def test_default_stages(self):
        company = TestDataFactory.create_company()
        stages = services.create_default_stages(company)
        self.assertEqual(len(stages), 6)
        self.assertEqual(stages[-1].name, 'Won')

    def test_move_card_rejects_archived(self):
        card = TestDataFactory.create_card(self.stages[0], status=Card.STATUS_ARCHIVED)
        with self.assertRaises(ValueError):
            services.move_card(card, self.stages[1])

    def test_stale_instance_moves_from_current_stage(self):
        card = Card.objects.filter(stage=self.stages[0]).order_by('order').first()
        stale = Card.objects.get(pk=card.pk)
        services.move_card(card, self.stages[1], 0)

        moved = services.move_card(stale, self.stages[2], 0)

        self.assertEqual(moved.stage_id, self.stages[2].id)
        self.assertEqual(self.card_ids(self.stages[2])[0], card.pk)
        self.assertNotIn(card.pk, self.card_ids(self.stages[1]))
        for stage in self.stages:
            self.assertEqual(self.orders(stage), list(range(len(self.orders(stage)))))

    def test_board_cache_kept_until_commit(self):
        cache.set(get_board_cache_key(self.company.id), ['cached board'])
        card = Card.objects.filter(stage=self.stages[0]).first()
        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            services.move_card(card, self.stages[1])
            self.assertIsNotNone(get_cached_board(self.company.id))
        self.assertTrue(callbacks)
        self.assertIsNone(get_cached_board(self.company.id))


class BoardCacheCommitTests(TransactionTestCase):
    """Invalidation happens after commit, so a read inside the transaction cannot re-cache stale data"""

    def setUp(self):
        cache.clear()
        self.company = TestDataFactory.create_company()
        self.source = TestDataFactory.create_stage(self.company, name='New Lead')
        self.destination = TestDataFactory.create_stage(self.company, name='Won')
        self.card = TestDataFactory.create_card(self.source)

    def test_board_cached_before_commit_is_dropped(self):
        key = get_board_cache_key(self.company.id)
        with transaction.atomic():
            services.move_card(self.card, self.destination)
            # A concurrent reader would cache the still-committed pre-move board here
            cache.set(key, ['pre-move board'])
        self.assertIsNone(cache.get(key))

    def test_signal_invalidation_waits_for_commit(self):
        key = get_board_cache_key(self.company.id)
        with transaction.atomic():
            Card.objects.get(pk=self.card.pk).save()
            cache.set(key, ['pre-edit board'])
        self.assertIsNone(cache.get(key))
