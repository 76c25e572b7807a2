import logging
import uuid
from typing import Iterable, List, Optional, Tuple

from fastapi import HTTPException
from pydantic import BaseModel
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import hash_password, new_salt
from .models import (
    CookedGood, CookStep, Email, Ingredient, InventoryItem, PhoneNumber, Recipe,
    User, UserSession,
)
from .schemas import (
    CookedGoodCreate, CookStepCreate, EmailCreate, IngredientCreate, IngredientUpdate,
    InventoryCreate, InventoryUpdate, PhoneUpdate, RecipeCreate, RecipeUpdate,
    UserCreate, UserUpdate,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


def _changes(data: BaseModel) -> dict:
    # only fields the client actually sent; null means "leave as is"
    return data.model_dump(exclude_unset=True, exclude_none=True)


async def _commit_or_conflict(db: AsyncSession, detail: str):
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail=detail)


# ---------------------------------------------------------------- users

async def get_user(db: AsyncSession, user_id: str) -> Optional[User]:
    return await db.get(User, user_id)


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalars().first()


async def list_users(db: AsyncSession) -> List[User]:
    result = await db.execute(select(User).order_by(User.username))
    return result.scalars().all()


async def create_user(db: AsyncSession, user: UserCreate) -> User:
    if await get_user_by_username(db, user.username):
        raise HTTPException(status_code=400, detail="Username already registered")
    salt = new_salt()
    db_user = User(
        id=_new_id(),
        first_name=user.first_name,
        last_name=user.last_name,
        username=user.username,
        pass_hash=hash_password(user.password, salt),
        pass_salt=salt,
        perms=user.perms,
    )
    db.add(db_user)
    await _commit_or_conflict(db, "Username already registered")
    await db.refresh(db_user)
    return db_user


async def update_user(db: AsyncSession, user_id: str, user: UserUpdate) -> Optional[User]:
    db_user = await get_user(db, user_id)
    if not db_user:
        return None
    changes = _changes(user)
    username = changes.get("username")
    if username and username != db_user.username and await get_user_by_username(db, username):
        raise HTTPException(status_code=400, detail="Username already registered")
    password = changes.pop("password", None)
    if password is not None:
        db_user.pass_salt = new_salt()
        db_user.pass_hash = hash_password(password, db_user.pass_salt)
    for key, value in changes.items():
        setattr(db_user, key, value)
    await _commit_or_conflict(db, "Username already registered")
    await db.refresh(db_user)
    return db_user


async def delete_user(db: AsyncSession, user_id: str) -> Optional[User]:
    db_user = await get_user(db, user_id)
    if not db_user:
        return None
    await db.execute(delete(UserSession).where(UserSession.user_id == user_id))
    await db.execute(delete(Email).where(Email.user_id == user_id))
    await db.execute(delete(PhoneNumber).where(PhoneNumber.user_id == user_id))
    await db.delete(db_user)
    await db.commit()
    logger.info(f"Deleted user {user_id} and owned records")
    return db_user


# ---------------------------------------------------------------- contact details

async def list_emails(db: AsyncSession, user_id: Optional[str] = None) -> List[Email]:
    query = select(Email)
    if user_id is not None:
        query = query.where(Email.user_id == user_id)
    result = await db.execute(query.order_by(Email.address))
    return result.scalars().all()


async def add_email(db: AsyncSession, user_id: str, email: EmailCreate) -> Email:
    db_email = Email(id=_new_id(), user_id=user_id, address=email.address, verified=False)
    db.add(db_email)
    await db.commit()
    await db.refresh(db_email)
    return db_email


async def delete_email(db: AsyncSession, user_id: str, email_id: str) -> Optional[Email]:
    db_email = await db.get(Email, email_id)
    if not db_email or db_email.user_id != user_id:
        return None
    await db.delete(db_email)
    await db.commit()
    return db_email


async def get_phone(db: AsyncSession, user_id: str) -> Optional[PhoneNumber]:
    result = await db.execute(select(PhoneNumber).where(PhoneNumber.user_id == user_id))
    return result.scalars().first()


async def set_phone(db: AsyncSession, user_id: str, phone: PhoneUpdate) -> Tuple[PhoneNumber, bool]:
    """Upsert the user's phone number. Returns (phone, created)."""
    db_phone = await get_phone(db, user_id)
    created = db_phone is None
    if created:
        db_phone = PhoneNumber(id=_new_id(), user_id=user_id, number=phone.number, verified=False)
        db.add(db_phone)
    elif db_phone.number != phone.number:
        db_phone.number = phone.number
        db_phone.verified = False
    await db.commit()
    await db.refresh(db_phone)
    return db_phone, created


# ---------------------------------------------------------------- inventory

async def list_inventory(db: AsyncSession, skip: int = 0, limit: int = 100) -> List[InventoryItem]:
    result = await db.execute(
        select(InventoryItem).order_by(InventoryItem.name).offset(skip).limit(limit)
    )
    return result.scalars().all()


async def get_inventory_item(db: AsyncSession, item_id: str) -> Optional[InventoryItem]:
    return await db.get(InventoryItem, item_id)


async def _inventory_name_taken(db: AsyncSession, name: str, exclude_id: Optional[str] = None) -> bool:
    query = select(InventoryItem.id).where(InventoryItem.name == name)
    if exclude_id is not None:
        query = query.where(InventoryItem.id != exclude_id)
    result = await db.execute(query)
    return result.first() is not None


async def create_inventory_item(db: AsyncSession, item: InventoryCreate) -> InventoryItem:
    if await _inventory_name_taken(db, item.name):
        raise HTTPException(status_code=400, detail="An inventory item with that name already exists")
    db_item = InventoryItem(id=_new_id(), **item.model_dump())
    db.add(db_item)
    await _commit_or_conflict(db, "An inventory item with that name already exists")
    await db.refresh(db_item)
    return db_item


async def update_inventory_item(
    db: AsyncSession, item_id: str, item: InventoryUpdate
) -> Optional[InventoryItem]:
    db_item = await get_inventory_item(db, item_id)
    if not db_item:
        return None
    changes = _changes(item)
    if "name" in changes and await _inventory_name_taken(db, changes["name"], exclude_id=item_id):
        raise HTTPException(status_code=400, detail="An inventory item with that name already exists")
    for key, value in changes.items():
        setattr(db_item, key, value)
    await _commit_or_conflict(db, "An inventory item with that name already exists")
    await db.refresh(db_item)
    return db_item


async def delete_inventory_item(db: AsyncSession, item_id: str) -> Optional[InventoryItem]:
    db_item = await get_inventory_item(db, item_id)
    if not db_item:
        return None
    used = await db.execute(select(Ingredient.recipe_id).where(Ingredient.inventory_id == item_id))
    if used.first() is not None:
        raise HTTPException(status_code=400, detail="Inventory item is used by an ingredient")
    await db.delete(db_item)
    await _commit_or_conflict(db, "Inventory item is used by an ingredient")
    return db_item


# ---------------------------------------------------------------- recipes

async def list_recipes(db: AsyncSession, skip: int = 0, limit: int = 100) -> List[Recipe]:
    result = await db.execute(select(Recipe).order_by(Recipe.name).offset(skip).limit(limit))
    return result.scalars().all()


async def get_recipe(db: AsyncSession, recipe_id: str) -> Optional[Recipe]:
    return await db.get(Recipe, recipe_id)


async def create_recipe(db: AsyncSession, recipe: RecipeCreate) -> Recipe:
    db_recipe = Recipe(id=_new_id(), **recipe.model_dump())
    db.add(db_recipe)
    await db.commit()
    await db.refresh(db_recipe)
    return db_recipe


async def update_recipe(db: AsyncSession, recipe_id: str, recipe: RecipeUpdate) -> Optional[Recipe]:
    db_recipe = await get_recipe(db, recipe_id)
    if not db_recipe:
        return None
    changes = _changes(recipe)
    for key, value in changes.items():
        setattr(db_recipe, key, value)
    if "name" in changes:
        # the cooked good mirrors its recipe's name
        cooked = await get_cooked_good(db, recipe_id)
        if cooked is not None:
            cooked.name = changes["name"]
    await db.commit()
    await db.refresh(db_recipe)
    return db_recipe


async def delete_recipe(db: AsyncSession, recipe_id: str) -> Optional[Recipe]:
    db_recipe = await get_recipe(db, recipe_id)
    if not db_recipe:
        return None
    await db.execute(delete(CookStep).where(CookStep.recipe_id == recipe_id))
    await db.execute(delete(Ingredient).where(Ingredient.recipe_id == recipe_id))
    await db.execute(delete(CookedGood).where(CookedGood.recipe_id == recipe_id))
    await db.delete(db_recipe)
    await db.commit()
    logger.info(f"Deleted recipe {recipe_id} with its steps, ingredients and cooked good")
    return db_recipe


# ---------------------------------------------------------------- cook steps

def renumber_plan(sequence_numbers: Iterable[int], removed: int) -> List[Tuple[int, int]]:
    """Moves that close the gap left by ``removed`` in a dense 1..N run.

    Returns ``(old, new)`` pairs in ascending order of ``old``; applying them
    in that order only ever writes into a slot that was just vacated.
    """
    return [(n, n - 1) for n in sorted(sequence_numbers) if n > removed]


async def count_cook_steps(db: AsyncSession, recipe_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(CookStep).where(CookStep.recipe_id == recipe_id)
    )
    return result.scalar_one()


async def list_cook_steps(db: AsyncSession, recipe_id: str) -> List[CookStep]:
    result = await db.execute(
        select(CookStep).where(CookStep.recipe_id == recipe_id).order_by(CookStep.id)
    )
    return result.scalars().all()


async def get_cook_step(db: AsyncSession, recipe_id: str, step_id: int) -> Optional[CookStep]:
    result = await db.execute(
        select(CookStep).where(CookStep.recipe_id == recipe_id, CookStep.id == step_id)
    )
    return result.scalars().first()


async def add_cook_step(db: AsyncSession, step: CookStepCreate) -> Optional[CookStep]:
    """Append a step at the end of its recipe. None if the recipe is missing."""
    if not await get_recipe(db, step.recipe_id):
        return None
    position = await count_cook_steps(db, step.recipe_id) + 1
    db_step = CookStep(recipe_id=step.recipe_id, id=position, description=step.description)
    db.add(db_step)
    await _commit_or_conflict(db, "Cook step was added concurrently, retry")
    await db.refresh(db_step)
    return db_step


async def update_cook_step(
    db: AsyncSession, recipe_id: str, step_id: int, description: str
) -> Optional[CookStep]:
    db_step = await get_cook_step(db, recipe_id, step_id)
    if not db_step:
        return None
    db_step.description = description
    await db.commit()
    await db.refresh(db_step)
    return db_step


async def delete_cook_step(db: AsyncSession, recipe_id: str, step_id: int) -> Optional[CookStep]:
    """Delete a step and shift every later step down by one.

    The position is part of the primary key, so each shift is a delete and a
    reinsert under the new key. Everything runs in one transaction; a failure
    part way leaves the recipe's steps untouched.
    """
    if not await get_recipe(db, recipe_id):
        return None
    target = await get_cook_step(db, recipe_id, step_id)
    if not target:
        return None

    result = await db.execute(
        select(CookStep)
        .where(CookStep.recipe_id == recipe_id, CookStep.id > step_id)
        .order_by(CookStep.id)
    )
    trailing = {s.id: s for s in result.scalars().all()}
    moves = renumber_plan(trailing, step_id)

    try:
        await db.delete(target)
        await db.flush()
        for old, new in moves:
            moved = trailing[old]
            description = moved.description
            await db.delete(moved)
            await db.flush()
            db.add(CookStep(recipe_id=recipe_id, id=new, description=description))
            await db.flush()
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception(f"Renumbering cook steps of recipe {recipe_id} failed, rolled back")
        raise

    if moves:
        logger.info(f"Deleted cook step {step_id} of recipe {recipe_id}, renumbered {len(moves)}")
    return target


# ---------------------------------------------------------------- ingredients

async def list_ingredients(db: AsyncSession, recipe_id: str) -> List[Ingredient]:
    result = await db.execute(
        select(Ingredient).where(Ingredient.recipe_id == recipe_id).order_by(Ingredient.id)
    )
    return result.scalars().all()


async def get_ingredient(db: AsyncSession, recipe_id: str, ingredient_id: int) -> Optional[Ingredient]:
    result = await db.execute(
        select(Ingredient).where(Ingredient.recipe_id == recipe_id, Ingredient.id == ingredient_id)
    )
    return result.scalars().first()


async def create_ingredient(db: AsyncSession, ingredient: IngredientCreate) -> Ingredient:
    if not await get_recipe(db, ingredient.recipe_id):
        raise HTTPException(status_code=404, detail="Recipe not found")
    if not await get_inventory_item(db, ingredient.inventory_id):
        raise HTTPException(status_code=404, detail="Inventory item not found")
    existing = await db.execute(
        select(Ingredient).where(
            Ingredient.recipe_id == ingredient.recipe_id,
            Ingredient.inventory_id == ingredient.inventory_id,
        )
    )
    if existing.scalars().first():
        raise HTTPException(
            status_code=400, detail="Ingredient already linked to this recipe and inventory item"
        )
    # per-recipe sequence, never reused while higher ids exist
    result = await db.execute(
        select(func.max(Ingredient.id)).where(Ingredient.recipe_id == ingredient.recipe_id)
    )
    next_id = (result.scalar() or 0) + 1
    db_ingredient = Ingredient(id=next_id, **ingredient.model_dump())
    db.add(db_ingredient)
    await _commit_or_conflict(db, "Ingredient already linked to this recipe and inventory item")
    await db.refresh(db_ingredient)
    return db_ingredient


async def update_ingredient(
    db: AsyncSession, recipe_id: str, ingredient_id: int, ingredient: IngredientUpdate
) -> Optional[Ingredient]:
    db_ingredient = await get_ingredient(db, recipe_id, ingredient_id)
    if not db_ingredient:
        return None
    for key, value in _changes(ingredient).items():
        setattr(db_ingredient, key, value)
    await db.commit()
    await db.refresh(db_ingredient)
    return db_ingredient


async def delete_ingredient(db: AsyncSession, recipe_id: str, ingredient_id: int) -> Optional[Ingredient]:
    db_ingredient = await get_ingredient(db, recipe_id, ingredient_id)
    if not db_ingredient:
        return None
    await db.delete(db_ingredient)
    await db.commit()
    return db_ingredient


# ---------------------------------------------------------------- cooked goods

async def list_cooked_goods(db: AsyncSession) -> List[CookedGood]:
    result = await db.execute(select(CookedGood).order_by(CookedGood.name))
    return result.scalars().all()


async def get_cooked_good(db: AsyncSession, recipe_id: str) -> Optional[CookedGood]:
    return await db.get(CookedGood, recipe_id)


async def create_cooked_good(db: AsyncSession, cooked: CookedGoodCreate) -> CookedGood:
    recipe = await get_recipe(db, cooked.recipe_id)
    if not recipe:
        raise HTTPException(status_code=404, detail="Recipe not found")
    if await get_cooked_good(db, cooked.recipe_id):
        raise HTTPException(status_code=400, detail="Cooked good already exists for this recipe")
    db_cooked = CookedGood(
        id=_new_id(), recipe_id=recipe.id, name=recipe.name, quantity=cooked.quantity
    )
    db.add(db_cooked)
    await _commit_or_conflict(db, "Cooked good already exists for this recipe")
    await db.refresh(db_cooked)
    return db_cooked


async def update_cooked_good(db: AsyncSession, recipe_id: str, quantity: int) -> Optional[CookedGood]:
    db_cooked = await get_cooked_good(db, recipe_id)
    if not db_cooked:
        return None
    db_cooked.quantity = quantity
    await db.commit()
    await db.refresh(db_cooked)
    return db_cooked


async def delete_cooked_good(db: AsyncSession, recipe_id: str) -> Optional[CookedGood]:
    db_cooked = await get_cooked_good(db, recipe_id)
    if not db_cooked:
        return None
    await db.delete(db_cooked)
    await db.commit()
    return db_cooked
