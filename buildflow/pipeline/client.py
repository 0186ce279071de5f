"""
Board client for the pipeline API.

``PipelineClient`` wraps the HTTP routes with a ``requests.Session``;
``BoardController`` drives a ``BoardState`` mirror through user actions:
optimistic card moves with rollback on failure, guarded stage rename and
delete, and refetch-and-replace after every successful mutation.
"""
import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import requests

from .board import BoardState, DropResult, DropdownState, MenuState
from .exceptions import (
    PipelineError, ValidationFailed, BusinessRuleViolation, InvalidMove, PersistenceFailed,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = 'http://127.0.0.1:8000/api'
DEFAULT_TIMEOUT = 10
AUTH_COOKIE_NAME = 'auth-token'


class PipelineClient:
    """Thin wrapper over the stage/card endpoints"""

    def __init__(self, base_url=None, token=None, session=None, timeout=None):
        self.base_url = (base_url if base_url is not None
                         else os.environ.get('BUILDFLOW_API_URL', DEFAULT_API_URL)).rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout or float(os.environ.get('BUILDFLOW_CLIENT_TIMEOUT', DEFAULT_TIMEOUT))
        self._token = token

    @property
    def token(self):
        """Explicit token, else the auth cookie the login response set"""
        if self._token:
            return self._token
        cookies = getattr(self.session, 'cookies', None)
        if cookies is not None:
            return cookies.get(AUTH_COOKIE_NAME)
        return None

    def _headers(self):
        headers = {'Content-Type': 'application/json'}
        if self.token:
            headers['Authorization'] = f'Bearer {self.token}'
        return headers

    def _request(self, method, path, payload=None):
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, json=payload, headers=self._headers(),
                                            timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise PersistenceFailed(f"Request to {path} failed: {e}")

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            message = body.get('error') if isinstance(body, dict) else None
            logger.warning(f"{method} {url} returned {response.status_code}: {message or 'no error body'}")
            raise PersistenceFailed(message or f"HTTP {response.status_code}",
                                    status_code=response.status_code, body=body)

        if response.status_code == 204:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"{method} {url} returned {response.status_code} with a non-JSON body: {e}")
            raise PersistenceFailed(f"Invalid response from {path}", status_code=response.status_code)

    def login(self, username, password):
        data = self._request('POST', '/auth/login/', {'username': username, 'password': password})
        self._token = data.get('access')
        return data

    def fetch_stages(self):
        return self._request('GET', '/stage/')

    def create_stage(self, name, color):
        return self._request('POST', '/stage/', {'name': name, 'color': color})

    def update_stage(self, stage_id, name, color=None):
        payload = {'name': name}
        if color:
            payload['color'] = color
        return self._request('PUT', f'/stage/{stage_id}/', payload)

    def delete_stage(self, stage_id):
        return self._request('DELETE', f'/stage/{stage_id}/')

    def create_card(self, payload):
        return self._request('POST', '/card/', payload)

    def move_card(self, card_id, stage_id, order):
        return self._request('PATCH', f'/card/{card_id}/move/', {'stageId': stage_id, 'order': order})


@dataclass
class Notification:
    level: str
    message: str


class Notifier:
    """Collects toast-style messages for the UI layer"""

    def __init__(self):
        self.messages = []

    def success(self, message):
        self._push('success', message)

    def error(self, message):
        self._push('error', message)

    def _push(self, level, message):
        self.messages.append(Notification(level, message))
        log = logger.info if level == 'success' else logger.warning
        log(f"[{level}] {message}")

    @property
    def last(self):
        return self.messages[-1] if self.messages else None

    def clear(self):
        self.messages = []


def validate_stage_name(stage, new_name):
    """Stripped new name; rejects empty names and renames to the current name"""
    name = (new_name or '').strip()
    if not name:
        raise ValidationFailed('Stage name cannot be empty')
    if name == stage.name:
        raise ValidationFailed('Stage name is unchanged')
    return name


def validate_budget(budget):
    if budget in (None, ''):
        return None
    try:
        value = Decimal(str(budget))
    except InvalidOperation:
        raise ValidationFailed('Budget must be a number')
    if value <= 0:
        raise ValidationFailed('Budget must be positive')
    return value


class BoardController:
    """
    User actions against the board.

    Every action ends with the board either refetched from the server or,
    when the server call failed, exactly as it was before the action.
    Failures are reported through the notifier and a falsy return value.
    """

    def __init__(self, client, notifier=None, state=None, confirm=None):
        self.client = client
        self.notifier = notifier or Notifier()
        self.state = state or BoardState()
        self.dropdowns = DropdownState()
        self.menus = MenuState()
        self.confirm = confirm
        self.listeners = []

    def subscribe(self, listener):
        """``listener(state)`` runs after every local board change"""
        self.listeners.append(listener)

    def _publish(self):
        for listener in self.listeners:
            listener(self.state)

    def refresh(self):
        """Refetch the board and replace the local mirror"""
        try:
            stages = self.client.fetch_stages()
        except PersistenceFailed:
            self.notifier.error('Failed to fetch stages')
            return False
        self.state.replace(stages)
        self._publish()
        return True

    def move_card(self, drop):
        """
        Optimistically move a card, then persist it.

        The local board changes before the request is sent. On failure the
        pre-move snapshot is restored; on success the board is refetched.
        """
        if not isinstance(drop, DropResult):
            drop = DropResult.from_dict(drop)
        if drop.is_noop:
            return False

        snapshot = self.state.snapshot()
        try:
            changed = self.state.apply_move(drop, strict=True)
        except InvalidMove as e:
            logger.warning(f"Ignoring invalid drop: {e}")
            return False
        if not changed:
            return False
        self._publish()

        try:
            self.client.move_card(drop.draggable_id, drop.destination.droppable_id, drop.destination.index)
        except PersistenceFailed as e:
            logger.warning(f"Rolling back move of card {drop.draggable_id}: {e}")
            self.state.restore(snapshot)
            self._publish()
            self.notifier.error('Failed to move card')
            return False

        self.refresh()
        return True

    def _require_stage(self, stage_id):
        stage = self.state.stage(stage_id)
        if stage is None:
            raise ValidationFailed(f"Unknown stage {stage_id!r}")
        return stage

    def rename_stage(self, stage_id, new_name, color=None):
        """Rename (and optionally recolor) a stage; no optimistic update"""
        try:
            stage = self._require_stage(stage_id)
            if color and color != stage.color and (new_name or '').strip() == stage.name:
                name = stage.name
            else:
                name = validate_stage_name(stage, new_name)
        except ValidationFailed as e:
            self.notifier.error(str(e))
            return False

        try:
            self.client.update_stage(stage_id, name, color)
        except PersistenceFailed:
            self.notifier.error('Failed to update stage')
            return False

        self.notifier.success('Stage updated successfully')
        self.dropdowns.close()
        self.refresh()
        return True

    def delete_stage(self, stage_id, confirm=None):
        """Delete an empty stage after confirmation, then refetch"""
        try:
            stage = self._require_stage(stage_id)
            if stage.cards:
                raise BusinessRuleViolation('Cannot delete stage with cards. Move cards first.')
        except PipelineError as e:
            self.notifier.error(str(e))
            return False

        confirm = confirm or self.confirm
        if confirm is not None and not confirm(stage):
            return False

        try:
            self.client.delete_stage(stage_id)
        except PersistenceFailed as e:
            self.notifier.error(str(e) if e.status_code == 400 else 'Failed to delete stage')
            return False

        self.notifier.success('Stage deleted successfully')
        self.dropdowns.close()
        self.refresh()
        return True

    def create_stage(self, name, color):
        name = (name or '').strip()
        if not name or not color:
            self.notifier.error('Name and color are required')
            return None
        try:
            stage = self.client.create_stage(name, color)
        except PersistenceFailed:
            self.notifier.error('Failed to create stage')
            return None
        self.notifier.success('Stage created successfully')
        self.refresh()
        return stage

    def create_card(self, title, stage_id=None, budget=None, priority='MEDIUM', **fields):
        """Create a lead in ``stage_id``, or in the first stage when omitted"""
        try:
            title = (title or '').strip()
            if not title:
                raise ValidationFailed('Title is required')
            budget = validate_budget(budget)
            if stage_id is None:
                if not self.state.stages:
                    raise ValidationFailed('No stage available for the new lead')
                stage_id = self.state.stages[0].id
        except ValidationFailed as e:
            self.notifier.error(str(e))
            return None

        payload = {'title': title, 'stageId': stage_id, 'priority': priority or 'MEDIUM'}
        if budget is not None:
            payload['budget'] = str(budget)
        for key in ('description', 'contactName', 'contactEmail', 'contactPhone', 'projectAddress', 'timeline'):
            if fields.get(key):
                payload[key] = fields[key]

        try:
            card = self.client.create_card(payload)
        except PersistenceFailed:
            self.notifier.error('Failed to create lead')
            return None
        self.notifier.success('Lead created successfully!')
        self.refresh()
        return card
