"""Repositories over the key-value store.

Universal notification definitions are owned here. The domain collections
(tasks, habits, finance) are written by the rest of the app; the scheduling
engine only reads them.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Generic, TypeVar

from pydantic import BaseModel, ValidationError

from reminder_hub.db.store import KeyValueStore
from reminder_hub.models.finance import (
    Bill,
    Budget,
    Debt,
    DebtDirection,
    RecurringIncome,
    SavingsGoal,
)
from reminder_hub.models.tasks import Habit, Task
from reminder_hub.models.universal import UniversalNotification

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class CollectionRepository(Generic[ModelT]):
    """Typed access to one collection of pydantic records keyed by ``id``."""

    collection: str
    model: type[ModelT]

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    async def get_all(self) -> list[ModelT]:
        rows = await self.store.scan(self.collection)
        items: list[ModelT] = []
        for key, raw in rows.items():
            try:
                items.append(self.model.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable {self.collection}/{key}: {e}")
        return items

    async def get_by_id(self, item_id: str) -> ModelT | None:
        raw = await self.store.get(self.collection, item_id)
        if raw is None:
            return None
        try:
            return self.model.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Unreadable {self.collection}/{item_id}: {e}")
            return None

    async def save(self, item: ModelT) -> None:
        await self.store.put(self.collection, item.id, item.model_dump(mode="json"))

    async def delete(self, item_id: str) -> None:
        await self.store.delete(self.collection, item_id)


class UniversalNotificationRepository(CollectionRepository[UniversalNotification]):
    collection = "universal_notifications"
    model = UniversalNotification

    async def get_all(self, enabled_only: bool = False) -> list[UniversalNotification]:
        items = await super().get_all()
        if enabled_only:
            items = [n for n in items if n.enabled]
        return sorted(items, key=lambda n: n.created_at)

    async def get_by_entity(self, entity_id: str) -> list[UniversalNotification]:
        return [n for n in await self.get_all() if n.entity_id == entity_id]

    async def get_by_module(self, module_id: str) -> list[UniversalNotification]:
        return [n for n in await self.get_all() if n.module_id == module_id]

    async def delete_by_entity(self, entity_id: str) -> int:
        removed = 0
        for definition in await self.get_by_entity(entity_id):
            await self.delete(definition.id)
            removed += 1
        return removed


class TaskRepository(CollectionRepository[Task]):
    collection = "tasks"
    model = Task


class HabitRepository(CollectionRepository[Habit]):
    collection = "habits"
    model = Habit

    async def get_all(self, include_archived: bool = True) -> list[Habit]:
        habits = await super().get_all()
        if include_archived:
            return habits
        return [h for h in habits if not h.archived]


class BillRepository(CollectionRepository[Bill]):
    collection = "bills"
    model = Bill

    async def get_active_bills(self) -> list[Bill]:
        return [b for b in await self.get_all() if b.is_active]


class DebtRepository(CollectionRepository[Debt]):
    collection = "debts"
    model = Debt

    async def get_active_debts(self, direction: DebtDirection | None = None) -> list[Debt]:
        return [
            d
            for d in await self.get_all()
            if d.is_active and (direction is None or d.direction == direction)
        ]


class BudgetRepository(CollectionRepository[Budget]):
    collection = "budgets"
    model = Budget

    async def get_active_budgets(self) -> list[Budget]:
        return [b for b in await self.get_all() if b.is_active]


class SavingsGoalRepository(CollectionRepository[SavingsGoal]):
    collection = "savings_goals"
    model = SavingsGoal

    async def get_active_goals(self) -> list[SavingsGoal]:
        return [g for g in await self.get_all() if g.is_active]


class RecurringIncomeRepository(CollectionRepository[RecurringIncome]):
    collection = "recurring_incomes"
    model = RecurringIncome

    async def get_currently_active(self, today: date) -> list[RecurringIncome]:
        return [i for i in await self.get_all() if i.is_currently_active(today)]


@dataclass
class Repositories:
    """All repositories sharing one store."""

    universal: UniversalNotificationRepository
    tasks: TaskRepository
    habits: HabitRepository
    bills: BillRepository
    debts: DebtRepository
    budgets: BudgetRepository
    savings_goals: SavingsGoalRepository
    recurring_incomes: RecurringIncomeRepository

    @classmethod
    def from_store(cls, store: KeyValueStore) -> "Repositories":
        return cls(
            universal=UniversalNotificationRepository(store),
            tasks=TaskRepository(store),
            habits=HabitRepository(store),
            bills=BillRepository(store),
            debts=DebtRepository(store),
            budgets=BudgetRepository(store),
            savings_goals=SavingsGoalRepository(store),
            recurring_incomes=RecurringIncomeRepository(store),
        )
