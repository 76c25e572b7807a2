import warnings
# suppress the passlib crypt deprecation warning
warnings.filterwarnings(
    "ignore",
    category=DeprecationWarning,
    module="passlib.utils"
)
import logging
from contextlib import asynccontextmanager
from typing import List, Optional, Union

from fastapi import Depends, FastAPI, Header, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import close_session, get_session, list_sessions, open_session, verify_password
from .celery_app import celery_app
from .config import Config, load_config
from .crud import (
    add_cook_step,
    add_email,
    create_cooked_good,
    create_ingredient,
    create_inventory_item,
    create_recipe,
    create_user,
    delete_cook_step,
    delete_cooked_good,
    delete_email,
    delete_ingredient,
    delete_inventory_item,
    delete_recipe,
    delete_user,
    get_cook_step,
    get_cooked_good,
    get_ingredient,
    get_inventory_item,
    get_phone,
    get_recipe,
    get_user,
    get_user_by_username,
    list_cook_steps,
    list_cooked_goods,
    list_emails,
    list_ingredients,
    list_inventory,
    list_recipes,
    list_users,
    set_phone,
    update_cook_step,
    update_cooked_good,
    update_ingredient,
    update_inventory_item,
    update_recipe,
    update_user,
)
from .database import build_engine, build_session_factory, get_db, init_db
from .deps import (
    DeveloperOverride,
    SessionIdentity,
    ensure_owner,
    get_config,
    is_developer_key,
    require_admin,
    require_session,
    require_session_or_dev,
)
from .schemas import (
    CookedGoodCreate,
    CookedGoodSchema,
    CookedGoodUpdate,
    CookStepCreate,
    CookStepSchema,
    CookStepUpdate,
    EmailCreate,
    EmailSchema,
    IngredientCreate,
    IngredientSchema,
    IngredientUpdate,
    InventoryCreate,
    InventorySchema,
    InventoryUpdate,
    Login,
    PhoneSchema,
    PhoneUpdate,
    RecipeCreate,
    RecipeSchema,
    RecipeUpdate,
    SessionSchema,
    UserCreate,
    UserSchema,
    UserUpdate,
)

logger = logging.getLogger(__name__)

Caller = Union[DeveloperOverride, SessionIdentity]


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = build_engine(app.state.cfg)
    app.state.session_factory = build_session_factory(engine)
    await init_db(engine)
    yield
    await engine.dispose()

app = FastAPI(title="Bakery API", lifespan=lifespan)
app.state.cfg = load_config()
app.add_middleware(
    CORSMiddleware,
    allow_origins=app.state.cfg.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.get("/")
async def read_root():
    return {"message": "Bakery Management API"}

# ------------------------------------------------------------------ sessions

@app.post("/api/register/user", response_model=SessionSchema, status_code=201)
async def register(
    form_data: UserCreate,
    response: Response,
    authorization: Optional[str] = Header(None),
    cfg: Config = Depends(get_config),
    db: AsyncSession = Depends(get_db),
):
    # only the developer key may hand out permission bits
    if form_data.perms and not is_developer_key(cfg, authorization):
        logger.warning(f"Rejected registration of {form_data.username} with perms {form_data.perms}")
        raise HTTPException(status_code=403, detail="Not authorized")
    user = await create_user(db, form_data)
    session = await open_session(db, user)
    logger.info(f"Registered user {user.username}")
    response.headers["Location"] = f"/api/sessions/{session.id}"
    return session

@app.post("/api/login", response_model=SessionSchema, status_code=201)
async def login(
    form_data: Login, response: Response, db: AsyncSession = Depends(get_db)
):
    user = await get_user_by_username(db, form_data.username)
    # same answer for unknown user and wrong password
    if not user or not verify_password(form_data.password, user.pass_salt, user.pass_hash):
        raise HTTPException(status_code=404, detail="User not found")
    session = await open_session(db, user)
    response.headers["Location"] = f"/api/sessions/{session.id}"
    return session

@app.get("/api/sessions", response_model=List[SessionSchema])
async def get_sessions(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return await list_sessions(db)

@app.post("/api/sessions/purge", status_code=202)
async def purge_sessions(caller: Caller = Depends(require_admin)):
    task = celery_app.send_task("tasks.purge_expired_sessions")
    logger.info(f"Started purge_expired_sessions task with ID: {task.id}")
    return {"task_id": task.id, "status": "Session purge started"}

@app.get("/api/tasks/{task_id}")
async def get_task(task_id: str, caller: Caller = Depends(require_admin)):
    task_result = celery_app.AsyncResult(task_id)
    state = getattr(task_result, "state", getattr(task_result, "status", None))
    logger.info(f"Checking task {task_id}, state: {state}")
    if not task_result.ready():
        return {"status": "PENDING", "detail": "Task is still processing"}
    if task_result.failed():
        raise HTTPException(
            status_code=500,
            detail=f"Task failed: {task_result.get(propagate=False)}",
        )
    return {"status": "SUCCESS", "result": task_result.get()}

@app.get("/api/sessions/{session_id}", response_model=SessionSchema)
async def read_session(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    caller: SessionIdentity = Depends(require_session),
):
    if caller.session_id != session_id:
        raise HTTPException(status_code=403, detail="Not authorized")
    session = await get_session(db, session_id)
    if session is None:
        raise HTTPException(status_code=500, detail="Resolved session disappeared")
    return session

@app.delete("/api/sessions/{session_id}")
async def logout(
    session_id: str,
    db: AsyncSession = Depends(get_db),
    caller: SessionIdentity = Depends(require_session),
):
    if caller.session_id != session_id:
        raise HTTPException(status_code=403, detail="Not authorized")
    session = await get_session(db, session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    await close_session(db, session)
    return {"message": "Session deleted"}

# ------------------------------------------------------------------ users

@app.get("/api/users", response_model=List[UserSchema])
async def get_users(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return await list_users(db)

@app.get("/api/users/{user_id}", response_model=UserSchema)
async def read_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    ensure_owner(caller, user_id)
    user = await get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

@app.put("/api/users/{user_id}", response_model=UserSchema)
async def update_existing_user(
    user_id: str,
    user: UserUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    ensure_owner(caller, user_id)
    updated_user = await update_user(db, user_id, user)
    if not updated_user:
        raise HTTPException(status_code=404, detail="User not found")
    return updated_user

@app.delete("/api/users/{user_id}")
async def delete_existing_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    ensure_owner(caller, user_id)
    user = await delete_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return {"message": "User deleted"}

@app.get("/api/users/{user_id}/emails", response_model=List[EmailSchema])
async def read_user_emails(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    ensure_owner(caller, user_id)
    if not await get_user(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return await list_emails(db, user_id)

@app.post("/api/users/{user_id}/emails", response_model=EmailSchema, status_code=201)
async def create_user_email(
    user_id: str,
    email: EmailCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    ensure_owner(caller, user_id)
    if not await get_user(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    db_email = await add_email(db, user_id, email)
    response.headers["Location"] = f"/api/users/{user_id}/emails/{db_email.id}"
    return db_email

@app.delete("/api/users/{user_id}/emails/{email_id}")
async def delete_user_email(
    user_id: str,
    email_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    ensure_owner(caller, user_id)
    if not await delete_email(db, user_id, email_id):
        raise HTTPException(status_code=404, detail="Email not found")
    return {"message": "Email deleted"}

@app.get("/api/emails", response_model=List[EmailSchema])
async def get_emails(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_admin),
):
    return await list_emails(db)

@app.get("/api/users/{user_id}/phone", response_model=PhoneSchema)
async def read_user_phone(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    ensure_owner(caller, user_id)
    phone = await get_phone(db, user_id)
    if not phone:
        raise HTTPException(status_code=404, detail="Phone number not found")
    return phone

@app.put("/api/users/{user_id}/phone", response_model=PhoneSchema)
async def update_user_phone(
    user_id: str,
    phone: PhoneUpdate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    ensure_owner(caller, user_id)
    if not await get_user(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    db_phone, created = await set_phone(db, user_id, phone)
    if created:
        response.status_code = 201
        response.headers["Location"] = f"/api/users/{user_id}/phone"
    return db_phone

# ------------------------------------------------------------------ inventory

@app.get("/api/inventory", response_model=List[InventorySchema])
async def get_inventory(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    return await list_inventory(db, skip, limit)

@app.post("/api/inventory", response_model=InventorySchema, status_code=201)
async def create_new_inventory_item(
    item: InventoryCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    db_item = await create_inventory_item(db, item)
    response.headers["Location"] = f"/api/inventory/{db_item.id}"
    return db_item

@app.get("/api/inventory/{item_id}", response_model=InventorySchema)
async def read_inventory_item(
    item_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    item = await get_inventory_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return item

@app.put("/api/inventory/{item_id}", response_model=InventorySchema)
async def update_existing_inventory_item(
    item_id: str,
    item: InventoryUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    updated_item = await update_inventory_item(db, item_id, item)
    if not updated_item:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return updated_item

@app.delete("/api/inventory/{item_id}")
async def delete_existing_inventory_item(
    item_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    item = await delete_inventory_item(db, item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return {"message": "Inventory item deleted"}

# ------------------------------------------------------------------ recipes

@app.get("/api/recipes", response_model=List[RecipeSchema])
async def get_recipes(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    return await list_recipes(db, skip, limit)

@app.post("/api/recipes", response_model=RecipeSchema, status_code=201)
async def create_new_recipe(
    recipe: RecipeCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    db_recipe = await create_recipe(db, recipe)
    response.headers["Location"] = f"/api/recipes/{db_recipe.id}"
    return db_recipe

@app.get("/api/recipes/{recipe_id}", response_model=RecipeSchema)
async def read_recipe(
    recipe_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    recipe = await get_recipe(db, recipe_id)
    if not recipe:
        raise HTTPException(status_code=404, detail="Recipe not found")
    return recipe

@app.put("/api/recipes/{recipe_id}", response_model=RecipeSchema)
async def update_existing_recipe(
    recipe_id: str,
    recipe: RecipeUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    updated_recipe = await update_recipe(db, recipe_id, recipe)
    if not updated_recipe:
        raise HTTPException(status_code=404, detail="Recipe not found")
    return updated_recipe

@app.delete("/api/recipes/{recipe_id}")
async def delete_existing_recipe(
    recipe_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    recipe = await delete_recipe(db, recipe_id)
    if not recipe:
        raise HTTPException(status_code=404, detail="Recipe not found")
    return {"message": "Recipe deleted"}

# ------------------------------------------------------------------ cook steps

@app.post("/api/cooksteps", response_model=CookStepSchema, status_code=201)
async def create_new_cook_step(
    step: CookStepCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    db_step = await add_cook_step(db, step)
    if not db_step:
        raise HTTPException(status_code=404, detail="Recipe not found")
    response.headers["Location"] = f"/api/cooksteps/{db_step.recipe_id}/{db_step.id}"
    return db_step

@app.get("/api/cooksteps/{recipe_id}", response_model=List[CookStepSchema])
async def get_cook_steps(
    recipe_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    if not await get_recipe(db, recipe_id):
        raise HTTPException(status_code=404, detail="Recipe not found")
    return await list_cook_steps(db, recipe_id)

@app.get("/api/cooksteps/{recipe_id}/{step_id}", response_model=CookStepSchema)
async def read_cook_step(
    recipe_id: str,
    step_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    step = await get_cook_step(db, recipe_id, step_id)
    if not step:
        raise HTTPException(status_code=404, detail="Cook step not found")
    return step

@app.put("/api/cooksteps/{recipe_id}/{step_id}", response_model=CookStepSchema)
async def update_existing_cook_step(
    recipe_id: str,
    step_id: int,
    step: CookStepUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    updated_step = await update_cook_step(db, recipe_id, step_id, step.description)
    if not updated_step:
        raise HTTPException(status_code=404, detail="Cook step not found")
    return updated_step

@app.delete("/api/cooksteps/{recipe_id}/{step_id}")
async def delete_existing_cook_step(
    recipe_id: str,
    step_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    step = await delete_cook_step(db, recipe_id, step_id)
    if not step:
        raise HTTPException(status_code=404, detail="Cook step not found")
    return {"message": "Cook step deleted"}

# ------------------------------------------------------------------ ingredients

@app.post("/api/ingredients", response_model=IngredientSchema, status_code=201)
async def create_new_ingredient(
    ingredient: IngredientCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    db_ingredient = await create_ingredient(db, ingredient)
    response.headers["Location"] = f"/api/ingredients/{db_ingredient.recipe_id}/{db_ingredient.id}"
    return db_ingredient

@app.get("/api/ingredients/{recipe_id}", response_model=List[IngredientSchema])
async def get_ingredients(
    recipe_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    if not await get_recipe(db, recipe_id):
        raise HTTPException(status_code=404, detail="Recipe not found")
    return await list_ingredients(db, recipe_id)

@app.get("/api/ingredients/{recipe_id}/{ingredient_id}", response_model=IngredientSchema)
async def read_ingredient(
    recipe_id: str,
    ingredient_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    ingredient = await get_ingredient(db, recipe_id, ingredient_id)
    if not ingredient:
        raise HTTPException(status_code=404, detail="Ingredient not found")
    return ingredient

@app.put("/api/ingredients/{recipe_id}/{ingredient_id}", response_model=IngredientSchema)
async def update_existing_ingredient(
    recipe_id: str,
    ingredient_id: int,
    ingredient: IngredientUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    updated_ingredient = await update_ingredient(db, recipe_id, ingredient_id, ingredient)
    if not updated_ingredient:
        raise HTTPException(status_code=404, detail="Ingredient not found")
    return updated_ingredient

@app.delete("/api/ingredients/{recipe_id}/{ingredient_id}")
async def delete_existing_ingredient(
    recipe_id: str,
    ingredient_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    ingredient = await delete_ingredient(db, recipe_id, ingredient_id)
    if not ingredient:
        raise HTTPException(status_code=404, detail="Ingredient not found")
    return {"message": "Ingredient deleted"}

# ------------------------------------------------------------------ cooked goods

@app.get("/api/cookedgoods", response_model=List[CookedGoodSchema])
async def get_cooked_goods(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    return await list_cooked_goods(db)

@app.post("/api/cookedgoods", response_model=CookedGoodSchema, status_code=201)
async def create_new_cooked_good(
    cooked: CookedGoodCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    db_cooked = await create_cooked_good(db, cooked)
    response.headers["Location"] = f"/api/cookedgoods/{db_cooked.recipe_id}"
    return db_cooked

@app.get("/api/cookedgoods/{recipe_id}", response_model=CookedGoodSchema)
async def read_cooked_good(
    recipe_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    cooked = await get_cooked_good(db, recipe_id)
    if not cooked:
        raise HTTPException(status_code=404, detail="Cooked good not found")
    return cooked

@app.put("/api/cookedgoods/{recipe_id}", response_model=CookedGoodSchema)
async def update_existing_cooked_good(
    recipe_id: str,
    cooked: CookedGoodUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    updated_cooked = await update_cooked_good(db, recipe_id, cooked.quantity)
    if not updated_cooked:
        raise HTTPException(status_code=404, detail="Cooked good not found")
    return updated_cooked

@app.delete("/api/cookedgoods/{recipe_id}")
async def delete_existing_cooked_good(
    recipe_id: str,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_session_or_dev),
):
    cooked = await delete_cooked_good(db, recipe_id)
    if not cooked:
        raise HTTPException(status_code=404, detail="Cooked good not found")
    return {"message": "Cooked good deleted"}
