"""
SQLAlchemy Database Models

Relational schema for the multi-tenant menu and ordering system:
- Restaurants and their staff accounts
- Menus -> categories -> items, plus customization options
- QR codes identifying physical tables
- FAQ entries shown to customers
- Orders with line items and chosen customizations
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from qrmenu.database import Base
from qrmenu.services.order_status import OrderStatus

__all__ = [
    "OrderStatus",
    "StaffRole",
    "Restaurant",
    "User",
    "Menu",
    "Category",
    "MenuItem",
    "CustomizationGroup",
    "CustomizationOption",
    "QRCode",
    "Faq",
    "Order",
    "OrderItem",
    "OrderItemCustomization",
]


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


DEFAULT_THEME = {
    "primaryColor": "#4f46e5",
    "backgroundColor": "#ffffff",
    "accentColor": "#f59e0b",
    "fontFamily": "Inter",
}


class StaffRole(str, enum.Enum):
    """Staff account roles."""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"


# =============================================================================
# TENANCY
# =============================================================================

class Restaurant(Base):
    """A tenant. Everything else hangs off a restaurant."""
    __tablename__ = "restaurants"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String(120), nullable=False)
    slug = Column(String(140), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    address = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    menus = relationship(
        "Menu",
        back_populates="restaurant",
        order_by="Menu.created_at",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Restaurant {self.slug}>"


class User(Base):
    """Staff account. Managers are bound to one restaurant."""
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(120), nullable=True)
    role = Column(Enum(StaffRole), default=StaffRole.MANAGER, nullable=False)
    restaurant_id = Column(String(32), ForeignKey("restaurants.id", ondelete="SET NULL"), nullable=True, index=True)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<User {self.email} - {self.role.value}>"


# =============================================================================
# MENUS
# =============================================================================

class Menu(Base):
    """A themed menu. Only active + published menus are visible to customers."""
    __tablename__ = "menus"

    id = Column(String(32), primary_key=True, default=new_id)
    restaurant_id = Column(String(32), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_published = Column(Boolean, default=False, nullable=False)
    theme = Column(JSON, nullable=False, default=lambda: dict(DEFAULT_THEME))

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    restaurant = relationship("Restaurant", back_populates="menus")
    categories = relationship(
        "Category",
        back_populates="menu",
        order_by="Category.display_order",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Menu {self.name}>"


class Category(Base):
    __tablename__ = "categories"

    id = Column(String(32), primary_key=True, default=new_id)
    menu_id = Column(String(32), ForeignKey("menus.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    display_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    menu = relationship("Menu", back_populates="categories")
    items = relationship(
        "MenuItem",
        back_populates="category",
        order_by="MenuItem.display_order",
        cascade="all, delete-orphan",
    )


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(String(32), primary_key=True, default=new_id)
    restaurant_id = Column(String(32), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id = Column(String(32), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    preparation_time = Column(Integer, nullable=True)  # minutes
    calories = Column(Integer, nullable=True)

    is_vegetarian = Column(Boolean, default=False, nullable=False)
    is_vegan = Column(Boolean, default=False, nullable=False)
    is_gluten_free = Column(Boolean, default=False, nullable=False)
    is_spicy = Column(Boolean, default=False, nullable=False)
    spice_level = Column(Integer, nullable=True)
    is_bestseller = Column(Boolean, default=False, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    display_order = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    category = relationship("Category", back_populates="items")

    def __repr__(self):
        return f"<MenuItem {self.name} - {self.price}>"


class CustomizationGroup(Base):
    """Restaurant-wide group of add-ons (e.g. "Extra toppings")."""
    __tablename__ = "customization_groups"

    id = Column(String(32), primary_key=True, default=new_id)
    restaurant_id = Column(String(32), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    is_required = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    options = relationship("CustomizationOption", back_populates="group", cascade="all, delete-orphan")


class CustomizationOption(Base):
    __tablename__ = "customization_options"

    id = Column(String(32), primary_key=True, default=new_id)
    group_id = Column(String(32), ForeignKey("customization_groups.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    price_modifier = Column(Numeric(10, 2), default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    group = relationship("CustomizationGroup", back_populates="options")


# =============================================================================
# QR CODES
# =============================================================================

class QRCode(Base):
    """Printed code on a table. The token is what customers scan."""
    __tablename__ = "qr_codes"

    id = Column(String(32), primary_key=True, default=new_id)
    restaurant_id = Column(String(32), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_id = Column(String(32), ForeignKey("menus.id", ondelete="SET NULL"), nullable=True, index=True)
    table_number = Column(String(30), nullable=True, index=True)
    name = Column(String(120), nullable=True)
    qr_token = Column(String(64), nullable=False, unique=True, index=True, default=lambda: str(uuid.uuid4()))
    is_active = Column(Boolean, default=True, nullable=False)
    scan_count = Column(Integer, default=0, nullable=False)
    last_scanned = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<QRCode table={self.table_number} active={self.is_active}>"


# =============================================================================
# FAQ
# =============================================================================

class Faq(Base):
    """Question and answer shown next to a restaurant's menu."""
    __tablename__ = "faqs"

    id = Column(String(32), primary_key=True, default=new_id)
    restaurant_id = Column(String(32), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=False)
    category = Column(String(60), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Faq {self.id} views={self.view_count}>"


# =============================================================================
# ORDERS
# =============================================================================

class Order(Base):
    """
    One customer submission.

    Created with its line items in a single transaction; afterwards only the
    status (and updated_at) changes.
    """
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True, default=new_id)
    restaurant_id = Column(String(32), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True)
    qr_code_id = Column(String(32), ForeignKey("qr_codes.id", ondelete="SET NULL"), nullable=True, index=True)

    customer_language = Column(String(10), default="en", nullable=False)
    special_requests = Column(Text, nullable=True)

    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.RECEIVED,
        nullable=False,
        index=True
    )
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)

    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    qr_code = relationship("QRCode")
    order_items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.created_at",
    )

    def __repr__(self):
        return f"<Order #{self.id} - {self.status.value} - {self.total_amount}>"


class OrderItem(Base):
    """Order line. Prices are captured at order time and never change."""
    __tablename__ = "order_items"

    id = Column(String(32), primary_key=True, default=new_id)
    order_id = Column(String(32), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(String(32), ForeignKey("menu_items.id", ondelete="SET NULL"), nullable=True, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    special_instructions = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    order = relationship("Order", back_populates="order_items")
    menu_item = relationship("MenuItem")
    customizations = relationship(
        "OrderItemCustomization",
        back_populates="order_item",
        cascade="all, delete-orphan",
    )


class OrderItemCustomization(Base):
    __tablename__ = "order_item_customizations"

    id = Column(String(32), primary_key=True, default=new_id)
    order_item_id = Column(String(32), ForeignKey("order_items.id", ondelete="CASCADE"), nullable=False, index=True)
    customization_option_id = Column(
        String(32), ForeignKey("customization_options.id", ondelete="SET NULL"), nullable=True
    )
    price_modifier = Column(Numeric(10, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    order_item = relationship("OrderItem", back_populates="customizations")
    option = relationship("CustomizationOption")
