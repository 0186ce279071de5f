"""
Client-side board state for the pipeline kanban.

The board is a local mirror of ``GET /api/stage/``: an ordered list of stage
columns, each holding its cards in display order. ``apply_move`` is the pure
drag-and-drop reducer; ``BoardState`` keeps the mirror keyed by stage id and
hands out snapshots so an optimistic move can be undone. ``DropdownState``
and ``MenuState`` hold the transient open/closed UI state.
"""
import copy
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional

from .exceptions import InvalidMove


@dataclass
class CardItem:
    id: Any
    title: str
    stage_id: Any
    contact_name: str = ''
    contact_email: str = ''
    contact_phone: str = ''
    budget: Optional[str] = None
    priority: str = 'MEDIUM'
    timeline: str = ''
    order: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CardItem":
        return cls(
            id=data['id'],
            title=data.get('title', ''),
            stage_id=data.get('stageId', data.get('stage_id')),
            contact_name=data.get('contactName') or '',
            contact_email=data.get('contactEmail') or '',
            contact_phone=data.get('contactPhone') or '',
            budget=data.get('budget'),
            priority=data.get('priority') or 'MEDIUM',
            timeline=data.get('timeline') or '',
            order=data.get('order') or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StageColumn:
    id: Any
    name: str
    color: str = '#94a3b8'
    order: int = 0
    cards: List[CardItem] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StageColumn":
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            color=data.get('color') or '#94a3b8',
            order=data.get('order') or 0,
            cards=[CardItem.from_dict(c) for c in data.get('cards') or []],
        )

    @property
    def card_ids(self) -> List[Any]:
        return [c.id for c in self.cards]


@dataclass(frozen=True)
class DragLocation:
    droppable_id: Any
    index: int


@dataclass(frozen=True)
class DropResult:
    """Outcome of a drag: which card, where it came from, where it landed"""
    draggable_id: Any
    source: DragLocation
    destination: Optional[DragLocation] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DropResult":
        source = data['source']
        destination = data.get('destination')
        return cls(
            draggable_id=data['draggableId'],
            source=DragLocation(source['droppableId'], int(source['index'])),
            destination=(
                DragLocation(destination['droppableId'], int(destination['index']))
                if destination else None
            ),
        )

    @property
    def is_noop(self) -> bool:
        """Dropped outside the board, or back on the exact same slot"""
        if self.destination is None:
            return True
        return (self.source.droppable_id == self.destination.droppable_id
                and self.source.index == self.destination.index)


def _find_stage(stages: List[StageColumn], stage_id) -> Optional[StageColumn]:
    return next((s for s in stages if s.id == stage_id), None)


def apply_move(stages: List[StageColumn], drop: DropResult, strict: bool = False) -> List[StageColumn]:
    """
    Return a new stage list with the dragged card relocated.

    The input list is never mutated. A drop outside the board or onto the
    same slot returns the stages unchanged. Unknown stages, a source index
    that does not hold the dragged card, or a destination index outside
    ``[0, len(destination)]`` raise InvalidMove when ``strict`` is set and
    leave the board unchanged otherwise.
    """
    if drop.is_noop:
        return list(stages)

    def reject(message):
        if strict:
            raise InvalidMove(message)
        return list(stages)

    if _find_stage(stages, drop.source.droppable_id) is None:
        return reject(f"Unknown source stage {drop.source.droppable_id!r}")
    if _find_stage(stages, drop.destination.droppable_id) is None:
        return reject(f"Unknown destination stage {drop.destination.droppable_id!r}")

    new_stages = copy.deepcopy(list(stages))
    source = _find_stage(new_stages, drop.source.droppable_id)
    destination = _find_stage(new_stages, drop.destination.droppable_id)

    if not 0 <= drop.source.index < len(source.cards):
        return reject(f"Source index {drop.source.index} out of range for stage {source.id!r}")
    if source.cards[drop.source.index].id != drop.draggable_id:
        return reject(f"Card {drop.draggable_id!r} is not at index {drop.source.index} of stage {source.id!r}")

    moved = source.cards.pop(drop.source.index)
    if not 0 <= drop.destination.index <= len(destination.cards):
        return reject(f"Destination index {drop.destination.index} out of range for stage {destination.id!r}")

    moved.stage_id = destination.id
    destination.cards.insert(drop.destination.index, moved)

    for stage in (source, destination):
        for index, card in enumerate(stage.cards):
            card.order = index
    return new_stages


class BoardState:
    """
    Local mirror of the board, keyed by stage id.

    The server list is the source of truth; ``replace`` swaps the whole
    mirror after every refetch and ``restore`` brings back a snapshot taken
    before an optimistic change.
    """

    def __init__(self, stages=None):
        self._stages: Dict[Any, StageColumn] = {}
        self._order: List[Any] = []
        self.version = 0
        if stages:
            self.replace(stages)

    def replace(self, stages):
        """Load stages (dicts from the API or StageColumn objects), ordered by ``order``"""
        columns = [s if isinstance(s, StageColumn) else StageColumn.from_dict(s) for s in stages]
        columns.sort(key=lambda s: s.order)
        self._stages = {s.id: s for s in columns}
        self._order = [s.id for s in columns]
        self.version += 1

    @property
    def stages(self) -> List[StageColumn]:
        return [self._stages[stage_id] for stage_id in self._order]

    def stage(self, stage_id) -> Optional[StageColumn]:
        return self._stages.get(stage_id)

    def stage_of_card(self, card_id) -> Optional[StageColumn]:
        return next((s for s in self.stages if card_id in s.card_ids), None)

    def card(self, card_id) -> Optional[CardItem]:
        stage = self.stage_of_card(card_id)
        if stage is None:
            return None
        return next(c for c in stage.cards if c.id == card_id)

    def snapshot(self) -> List[StageColumn]:
        return copy.deepcopy(self.stages)

    def restore(self, snapshot: List[StageColumn]):
        self.replace(copy.deepcopy(snapshot))

    def apply_move(self, drop: DropResult, strict: bool = False) -> bool:
        """Apply a drop to the mirror; returns whether anything changed"""
        before = self.stages
        after = apply_move(before, drop, strict=strict)
        if [s.card_ids for s in after] == [s.card_ids for s in before]:
            return False
        self.replace(after)
        return True

    def as_lists(self) -> Dict[Any, List[Any]]:
        """Card ids per stage id, in display order"""
        return {s.id: s.card_ids for s in self.stages}


class DropdownState:
    """At most one stage dropdown is open at any time"""

    def __init__(self):
        self.open_dropdown_id = None

    def is_open(self, stage_id) -> bool:
        return self.open_dropdown_id is not None and self.open_dropdown_id == stage_id

    def open(self, stage_id):
        self.open_dropdown_id = stage_id

    def close(self):
        self.open_dropdown_id = None

    def toggle(self, stage_id):
        if self.is_open(stage_id):
            self.close()
        else:
            self.open(stage_id)

    def handle_document_click(self, target, contains: Callable[[Any, Any], bool] = None):
        """
        Close the open dropdown unless the click landed inside it.

        ``contains(panel_id, target)`` answers whether ``target`` is inside
        the panel; by default only a click on the panel itself counts.
        """
        if self.open_dropdown_id is None:
            return
        contains = contains or (lambda panel_id, clicked: panel_id == clicked)
        if not contains(self.open_dropdown_id, target):
            self.close()


class MenuState:
    """Per-card context menus, each open or closed independently"""

    def __init__(self):
        self._open: Dict[Any, bool] = {}

    def is_open(self, card_id) -> bool:
        return self._open.get(card_id, False)

    def toggle(self, card_id):
        self._open[card_id] = not self.is_open(card_id)

    def close(self, card_id):
        self._open.pop(card_id, None)

    def open_menus(self) -> List[Any]:
        return [card_id for card_id, is_open in self._open.items() if is_open]

    def handle_document_click(self, target, contains: Callable[[Any, Any], bool] = None):
        contains = contains or (lambda menu_id, clicked: menu_id == clicked)
        for card_id in self.open_menus():
            if not contains(card_id, target):
                self.close(card_id)
