"""Category management."""

from uuid import UUID

from cashledger.flows.access import require_user
from cashledger.flows.base import UNCHANGED, LedgerFlow, changed_fields
from cashledger.models.audit import AuditEventType
from cashledger.models.records import Category

DEFAULT_CATEGORIES = (
    ("Food", "utensils", "#ef4444"),
    ("Transport", "car", "#f59e0b"),
    ("Housing", "home", "#10b981"),
    ("Leisure", "gamepad-2", "#3b82f6"),
    ("Health", "heart-pulse", "#ec4899"),
    ("Clothing", "shirt", "#8b5cf6"),
    ("Technology", "smartphone", "#06b6d4"),
    ("Other", "more-horizontal", "#6b7280"),
)


class CategoryFlow(LedgerFlow):
    """
    Create, rename and delete categories.

    Deleting a category leaves its transactions, rules and budgets in
    place; joins report them with category=None.
    """

    async def list_categories(self, user_id: str) -> list[Category]:
        require_user(user_id)
        return await self._store.list_records(Category, user_id=user_id)

    async def create_category(
        self,
        user_id: str,
        name: str,
        icon: str = "circle",
        color: str = "#888888",
    ) -> Category:
        require_user(user_id)
        self._validator.ensure_valid(self._validator.validate_category(name, color))

        category = await self._store.insert(
            Category(user_id=user_id, name=name, icon=icon, color=color)
        )
        await self._audit(
            AuditEventType.CATEGORY_CREATED,
            category,
            f"Category created: {category.name}",
        )
        return category

    async def update_category(
        self,
        user_id: str,
        category_id: UUID,
        name: str = UNCHANGED,
        icon: str = UNCHANGED,
        color: str = UNCHANGED,
    ) -> Category:
        require_user(user_id)
        current = await self._owned_category(category_id, user_id)
        changes = changed_fields(name=name, icon=icon, color=color)
        self._validator.ensure_valid(self._validator.validate_category(
            changes.get("name", current.name),
            changes.get("color", current.color),
        ))

        category = await self._store.patch(Category, category_id, changes)
        await self._audit(
            AuditEventType.CATEGORY_UPDATED,
            category,
            f"Category updated: {category.name}",
            {"fields": sorted(changes)},
        )
        return category

    async def delete_category(self, user_id: str, category_id: UUID) -> None:
        require_user(user_id)
        category = await self._owned_category(category_id, user_id)
        await self._store.delete(Category, category_id)
        await self._audit(
            AuditEventType.CATEGORY_DELETED,
            category,
            f"Category deleted: {category.name}",
        )

    async def seed_default_categories(self, user_id: str) -> list[Category]:
        """
        Give a new user the default category set.

        Does nothing (and returns []) if the user already has a category.
        """
        require_user(user_id)
        if await self._store.list_records(Category, user_id=user_id, limit=1):
            return []

        return await self._insert_defaults(user_id)

    async def reset_default_categories(self, user_id: str) -> list[Category]:
        """
        Replace all of a user's categories with the default set.

        Transactions, rules and budgets that pointed at a removed category
        keep their category_id and report category=None afterwards.
        """
        require_user(user_id)
        for category in await self._store.list_records(Category, user_id=user_id):
            await self._store.delete(Category, category.id)
            await self._audit(
                AuditEventType.CATEGORY_DELETED,
                category,
                f"Category deleted: {category.name}",
                {"reset": True},
            )
        return await self._insert_defaults(user_id)

    async def _insert_defaults(self, user_id: str) -> list[Category]:
        created = []
        for name, icon, color in DEFAULT_CATEGORIES:
            category = await self._store.insert(
                Category(user_id=user_id, name=name, icon=icon, color=color)
            )
            created.append(category)
        return created
