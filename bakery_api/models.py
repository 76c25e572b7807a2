# bakery_api/models.py

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint,
)
from .database import Base

PERM_ADMIN = 1


class User(Base):
    __tablename__ = "users"
    id         = Column(String(36), primary_key=True)
    first_name = Column(String(50), nullable=False)
    last_name  = Column(String(50), nullable=False)
    username   = Column(String(50), unique=True, index=True, nullable=False)
    pass_hash  = Column(String(64), nullable=False)
    pass_salt  = Column(String(36), nullable=False)
    perms      = Column(Integer, nullable=False, default=0)


class UserSession(Base):
    __tablename__ = "sessions"
    id               = Column(String(36), primary_key=True)
    user_id          = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    creation_date    = Column(DateTime, nullable=False)
    last_active_date = Column(DateTime, nullable=False)


class Email(Base):
    __tablename__ = "emails"
    id       = Column(String(36), primary_key=True)
    user_id  = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    address  = Column(String(50), nullable=False)
    verified = Column(Boolean, nullable=False, default=False)


class PhoneNumber(Base):
    __tablename__ = "phone_numbers"
    id       = Column(String(36), primary_key=True)
    user_id  = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)
    number   = Column(String(20), nullable=False)
    verified = Column(Boolean, nullable=False, default=False)


class InventoryItem(Base):
    __tablename__ = "inventory_items"
    id                     = Column(String(36), primary_key=True)
    name                   = Column(String(50), unique=True, nullable=False)
    quantity               = Column(Integer, nullable=False, default=0)
    purchase_quantity      = Column(Integer, nullable=False, default=0)
    cost_per_purchase_unit = Column(Float, nullable=False, default=0.0)
    unit                   = Column(String(50), nullable=False)
    notes                  = Column(String(255), nullable=False, default="")


class Recipe(Base):
    __tablename__ = "recipes"
    id          = Column(String(36), primary_key=True)
    name        = Column(String(50), nullable=False)
    description = Column(String(255), nullable=False, default="")
    prep_unit   = Column(String(50), nullable=False)
    cook_unit   = Column(String(50), nullable=False)
    rating      = Column(Float, nullable=False, default=0.0)
    prep_time   = Column(Float, nullable=False, default=0.0)
    cook_time   = Column(Float, nullable=False, default=0.0)


class CookStep(Base):
    __tablename__ = "cook_steps"
    # id is the 1-based position within the recipe
    recipe_id   = Column(String(36), ForeignKey("recipes.id"), primary_key=True)
    id          = Column(Integer, primary_key=True, autoincrement=False)
    description = Column(String(255), nullable=False)


class Ingredient(Base):
    __tablename__ = "ingredients"
    __table_args__ = (UniqueConstraint("recipe_id", "inventory_id"),)
    recipe_id    = Column(String(36), ForeignKey("recipes.id"), primary_key=True)
    id           = Column(Integer, primary_key=True, autoincrement=False)
    inventory_id = Column(String(36), ForeignKey("inventory_items.id"), nullable=False)
    name         = Column(String(50), nullable=False)
    quantity     = Column(Integer, nullable=False)
    min_quantity = Column(Integer, nullable=False, default=0)
    unit         = Column(String(50), nullable=False)


class CookedGood(Base):
    __tablename__ = "cooked_goods"
    recipe_id = Column(String(36), ForeignKey("recipes.id"), primary_key=True)
    id        = Column(String(36), unique=True, nullable=False)
    name      = Column(String(50), nullable=False)
    quantity  = Column(Integer, nullable=False, default=0)
