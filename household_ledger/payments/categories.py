"""
System categories used by payment transactions.

DESIGN DECISION: The category id is derived from (owner, kind, name), so
two concurrent payments that both find the category missing write the
same record instead of creating duplicates.
"""

from uuid import NAMESPACE_URL, uuid5

from household_ledger.clock import Clock, utc_now
from household_ledger.models.wallet import Category, CategoryKind
from household_ledger.services.storage import Collection, RecordStorageInterface


def category_id_for(owner: str, name: str, kind: CategoryKind) -> str:
    """Deterministic id for a (owner, kind, name) category."""
    key = f"household-ledger:category:{owner}:{kind.value}:{name.strip().lower()}"
    return f"cat_{uuid5(NAMESPACE_URL, key).hex}"


async def find_or_create_category(
    storage: RecordStorageInterface,
    owner: str,
    name: str,
    kind: CategoryKind,
    clock: Clock = utc_now,
) -> Category:
    """
    Return the owner's category with this name and kind, creating it once.

    A matching category the user created by hand is reused as is.
    """
    category_id = category_id_for(owner, name, kind)
    category = await storage.get(Collection.CATEGORIES, category_id)
    if category is not None:
        return category

    existing = await storage.query(Collection.CATEGORIES, owner=owner, name=name, kind=kind)
    if existing:
        return existing[0]

    now = clock()
    category = Category(
        id=category_id,
        owner=owner,
        name=name,
        kind=kind,
        is_default=True,
        created_at=now,
        updated_at=now,
    )
    await storage.put(Collection.CATEGORIES, category)
    return category
