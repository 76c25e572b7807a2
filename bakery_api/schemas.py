from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Optional


class UserCreate(BaseModel):
    first_name: str = Field(max_length=50)
    last_name: str = Field(max_length=50)
    username: str = Field(min_length=1, max_length=50)
    password: str
    perms: int = Field(default=0, ge=0)

class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, max_length=50)
    last_name: Optional[str] = Field(default=None, max_length=50)
    username: Optional[str] = Field(default=None, min_length=1, max_length=50)
    password: Optional[str] = None

class UserSchema(BaseModel):
    id: str
    first_name: str
    last_name: str
    username: str
    perms: int

    model_config = ConfigDict(from_attributes=True)

class Login(BaseModel):
    username: str
    password: str

class SessionSchema(BaseModel):
    id: str
    user_id: str
    creation_date: datetime
    last_active_date: datetime

    model_config = ConfigDict(from_attributes=True)


class EmailCreate(BaseModel):
    address: str = Field(max_length=50, pattern=r"^[^@\s]+@[^@\s]+$")

class EmailSchema(EmailCreate):
    id: str
    user_id: str
    verified: bool

    model_config = ConfigDict(from_attributes=True)

class PhoneUpdate(BaseModel):
    number: str = Field(min_length=1, max_length=20)

class PhoneSchema(PhoneUpdate):
    id: str
    user_id: str
    verified: bool

    model_config = ConfigDict(from_attributes=True)


class InventoryBase(BaseModel):
    name: str = Field(max_length=50)
    quantity: int = Field(ge=0)
    purchase_quantity: int = Field(default=0, ge=0)
    cost_per_purchase_unit: float = Field(default=0.0, ge=0)
    unit: str = Field(max_length=50)
    notes: str = Field(default="", max_length=255)

class InventoryCreate(InventoryBase):
    pass

class InventoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=50)
    quantity: Optional[int] = Field(default=None, ge=0)
    purchase_quantity: Optional[int] = Field(default=None, ge=0)
    cost_per_purchase_unit: Optional[float] = Field(default=None, ge=0)
    unit: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=255)

class InventorySchema(InventoryBase):
    id: str

    model_config = ConfigDict(from_attributes=True)


class RecipeBase(BaseModel):
    name: str = Field(max_length=50)
    description: str = Field(default="", max_length=255)
    prep_unit: str = Field(max_length=50)
    cook_unit: str = Field(max_length=50)
    rating: float = 0.0
    prep_time: float = Field(default=0.0, ge=0)
    cook_time: float = Field(default=0.0, ge=0)

class RecipeCreate(RecipeBase):
    pass

class RecipeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=50)
    description: Optional[str] = Field(default=None, max_length=255)
    prep_unit: Optional[str] = Field(default=None, max_length=50)
    cook_unit: Optional[str] = Field(default=None, max_length=50)
    rating: Optional[float] = None
    prep_time: Optional[float] = Field(default=None, ge=0)
    cook_time: Optional[float] = Field(default=None, ge=0)

class RecipeSchema(RecipeBase):
    id: str

    model_config = ConfigDict(from_attributes=True)


class CookStepCreate(BaseModel):
    recipe_id: str
    description: str = Field(max_length=255)

class CookStepUpdate(BaseModel):
    description: str = Field(max_length=255)

class CookStepSchema(CookStepCreate):
    id: int

    model_config = ConfigDict(from_attributes=True)


class IngredientCreate(BaseModel):
    recipe_id: str
    inventory_id: str
    name: str = Field(max_length=50)
    quantity: int = Field(ge=0)
    min_quantity: int = Field(default=0, ge=0)
    unit: str = Field(max_length=50)

class IngredientUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=50)
    quantity: Optional[int] = Field(default=None, ge=0)
    min_quantity: Optional[int] = Field(default=None, ge=0)
    unit: Optional[str] = Field(default=None, max_length=50)

class IngredientSchema(IngredientCreate):
    id: int

    model_config = ConfigDict(from_attributes=True)


class CookedGoodCreate(BaseModel):
    recipe_id: str
    quantity: int = Field(default=0, ge=0)

class CookedGoodUpdate(BaseModel):
    quantity: int = Field(ge=0)

class CookedGoodSchema(BaseModel):
    id: str
    recipe_id: str
    name: str
    quantity: int

    model_config = ConfigDict(from_attributes=True)
