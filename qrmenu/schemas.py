"""
Pydantic Schemas for Request/Response Validation

Wire format is camelCase (``orderId``, ``totalAmount``); Python code uses
snake_case. Every schema accepts both spellings on input.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from qrmenu.models import StaffRole


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# ORDER REQUEST SCHEMAS
# =============================================================================

class OrderStatusUpdate(CamelModel):
    """Body of PATCH /api/orders."""
    order_id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1, examples=["PREPARING"])


class BulkStatusUpdate(CamelModel):
    """Body of PATCH /api/orders/bulk."""
    order_ids: List[str] = Field(..., min_length=1)
    status: str = Field(..., min_length=1, examples=["CANCELLED"])


class OrderLineIn(CamelModel):
    """Single line of a submitted order."""
    menu_item_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1)
    unit_price: Optional[Decimal] = None
    special_instructions: Optional[str] = Field(None, max_length=500)
    customization_option_ids: List[str] = Field(default_factory=list)

    @field_validator("quantity", mode="before")
    @classmethod
    def clamp_quantity(cls, v: Any) -> int:
        # Anything below one (or missing) means a single portion
        try:
            return max(1, int(v or 1))
        except (TypeError, ValueError):
            raise ValueError("quantity must be an integer")


class PublicOrderCreate(CamelModel):
    """Order placed by a customer from the public menu."""
    restaurant_id: str = Field(..., min_length=1)
    menu_id: Optional[str] = None
    table_number: Optional[str] = Field(None, max_length=30)
    qr_code_id: Optional[str] = None
    qr_token: Optional[str] = None
    customer_language: str = Field(default="en", max_length=10)
    special_requests: Optional[str] = Field(None, max_length=1000)
    items: List[OrderLineIn] = Field(..., min_length=1)


class AdminOrderCreate(CamelModel):
    """Order created by staff. Starts as DRAFT."""
    restaurant_id: str = Field(..., min_length=1)
    qr_code_id: Optional[str] = None
    customer_language: str = Field(default="en", max_length=10)
    special_requests: Optional[str] = Field(None, max_length=1000)
    items: List[OrderLineIn] = Field(default_factory=list)


# =============================================================================
# ORDER RESPONSE SCHEMAS
# =============================================================================

class QRCodeRef(CamelModel):
    id: str
    table_number: Optional[str] = None
    name: Optional[str] = None


class MenuItemRef(CamelModel):
    id: str
    name: str


class CustomizationOptionRef(CamelModel):
    id: str
    name: str
    price_modifier: Decimal


class OrderItemCustomizationOut(CamelModel):
    id: str
    customization_option_id: Optional[str] = None
    price_modifier: Decimal
    option: Optional[CustomizationOptionRef] = None


class OrderItemOut(CamelModel):
    id: str
    order_id: str
    menu_item_id: Optional[str] = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    special_instructions: Optional[str] = None
    created_at: datetime
    menu_item: Optional[MenuItemRef] = None
    customizations: List[OrderItemCustomizationOut] = Field(default_factory=list)


class OrderOut(CamelModel):
    """Order as shown on the board."""
    id: str
    restaurant_id: str
    qr_code_id: Optional[str] = None
    customer_language: str
    special_requests: Optional[str] = None
    status: str
    total_amount: Decimal
    submitted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    qr_code: Optional[QRCodeRef] = None
    order_items: List[OrderItemOut] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def status_value(cls, v: Any) -> str:
        return getattr(v, "value", v)


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class OrderListResponse(CamelModel):
    success: bool = True
    orders: List[OrderOut]
    pagination: Pagination


class OrderResponse(CamelModel):
    success: bool = True
    order: OrderOut


class BulkUpdateData(CamelModel):
    updated: int
    orders: List[OrderOut]


class BulkUpdateResponse(CamelModel):
    success: bool = True
    data: BulkUpdateData
    message: str


class PublicOrderResponse(CamelModel):
    """Response after a customer submits an order."""
    success: bool = True
    order_id: str
    menu_name: str
    total_amount: str
    estimated_time: str


class TopMenuItem(CamelModel):
    name: str
    count: int
    revenue: Decimal


class DateRange(CamelModel):
    start: datetime
    end: datetime


class OptionalDateRange(CamelModel):
    """Filter range as given by the caller; either end may be open."""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class OrderStats(CamelModel):
    total_orders: int
    orders_by_status: dict[str, int]
    total_revenue: Decimal
    average_order_value: Decimal
    recent_orders: List[OrderOut]
    top_menu_items: List[TopMenuItem]
    hourly_distribution: List[int]
    period: str
    date_range: DateRange


class OrderStatsResponse(CamelModel):
    success: bool = True
    data: OrderStats


# =============================================================================
# RESTAURANTS
# =============================================================================

class RestaurantCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=120)
    description: Optional[str] = None
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)


class RestaurantUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=2, max_length=120)
    description: Optional[str] = None
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=30)
    is_active: Optional[bool] = None


class RestaurantOut(CamelModel):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class RestaurantListResponse(CamelModel):
    success: bool = True
    restaurants: List[RestaurantOut]
    pagination: Pagination


class RestaurantMetrics(CamelModel):
    total_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    qr_scans: int
    active_qr_codes: int
    menus: int
    published_menus: int


class PopularItem(CamelModel):
    id: Optional[str] = None
    name: str
    price: Optional[Decimal] = None
    order_count: int


class LanguageUsage(CamelModel):
    language_code: str
    usage_count: int
    last_used: Optional[datetime] = None


class QRCodeScanStats(CamelModel):
    id: str
    table_number: Optional[str] = None
    scan_count: int
    last_scanned: Optional[datetime] = None


class RestaurantAnalytics(CamelModel):
    metrics: RestaurantMetrics
    orders_by_status: dict[str, int]
    popular_items: List[PopularItem]
    language_usage: List[LanguageUsage]
    qr_code_stats: List[QRCodeScanStats]
    date_range: OptionalDateRange


class RestaurantAnalyticsResponse(CamelModel):
    success: bool = True
    data: RestaurantAnalytics


class FaqCreate(CamelModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    category: Optional[str] = Field(None, max_length=60)


class FaqUpdate(CamelModel):
    question: Optional[str] = Field(None, min_length=1)
    answer: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, max_length=60)
    is_active: Optional[bool] = None


class FaqOut(CamelModel):
    id: str
    restaurant_id: str
    question: str
    answer: str
    category: Optional[str] = None
    is_active: bool
    view_count: int
    created_at: datetime
    updated_at: datetime


# =============================================================================
# MENUS
# =============================================================================

class MenuTheme(CamelModel):
    primary_color: str = "#4f46e5"
    background_color: str = "#ffffff"
    accent_color: str = "#f59e0b"
    font_family: str = "Inter"


class MenuItemCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    price: Decimal = Field(..., gt=0)
    image_url: Optional[str] = Field(None, max_length=500)
    preparation_time: Optional[int] = Field(None, ge=0)
    calories: Optional[int] = Field(None, ge=0)
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    is_spicy: bool = False
    spice_level: Optional[int] = Field(None, ge=0, le=5)
    is_bestseller: bool = False
    is_available: bool = True
    display_order: int = 0


class MenuItemUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0)
    image_url: Optional[str] = Field(None, max_length=500)
    preparation_time: Optional[int] = Field(None, ge=0)
    calories: Optional[int] = Field(None, ge=0)
    is_vegetarian: Optional[bool] = None
    is_vegan: Optional[bool] = None
    is_gluten_free: Optional[bool] = None
    is_spicy: Optional[bool] = None
    spice_level: Optional[int] = Field(None, ge=0, le=5)
    is_bestseller: Optional[bool] = None
    is_available: Optional[bool] = None
    display_order: Optional[int] = None


class MenuItemOut(CamelModel):
    id: str
    category_id: str
    name: str
    description: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None
    preparation_time: Optional[int] = None
    calories: Optional[int] = None
    is_vegetarian: bool
    is_vegan: bool
    is_gluten_free: bool
    is_spicy: bool
    spice_level: Optional[int] = None
    is_bestseller: bool
    is_available: bool
    display_order: int


class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    display_order: int = 0
    is_active: bool = True
    items: List[MenuItemCreate] = Field(default_factory=list)


class CategoryUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    display_order: Optional[int] = None
    is_active: Optional[bool] = None


class CategoryOut(CamelModel):
    id: str
    menu_id: str
    name: str
    description: Optional[str] = None
    display_order: int
    is_active: bool
    items: List[MenuItemOut] = Field(default_factory=list)


class MenuCreate(CamelModel):
    restaurant_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    is_active: bool = True
    is_published: bool = False
    theme: MenuTheme = Field(default_factory=MenuTheme)
    categories: List[CategoryCreate] = Field(default_factory=list)


class MenuUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    is_published: Optional[bool] = None
    theme: Optional[MenuTheme] = None


class MenuOut(CamelModel):
    id: str
    restaurant_id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    is_published: bool
    theme: MenuTheme
    categories: List[CategoryOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class MenuSummary(CamelModel):
    id: str
    restaurant_id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    is_published: bool
    created_at: datetime
    updated_at: datetime


class PublicMenuOut(CamelModel):
    """Customer-facing menu: only active categories and available items."""
    id: str
    name: str
    description: Optional[str] = None
    restaurant_id: str
    restaurant_name: str
    theme: MenuTheme
    categories: List[CategoryOut]


# =============================================================================
# QR CODES
# =============================================================================

class QRCodeCreate(CamelModel):
    menu_id: Optional[str] = None
    restaurant_id: Optional[str] = None
    table_number: str = Field(..., min_length=1, max_length=30)
    name: Optional[str] = Field(None, max_length=120)


class QRCodeBulkCreate(CamelModel):
    menu_id: Optional[str] = None
    restaurant_id: Optional[str] = None
    table_numbers: List[str] = Field(..., min_length=1)


class QRCodeUpdate(CamelModel):
    table_number: Optional[str] = Field(None, min_length=1, max_length=30)
    name: Optional[str] = Field(None, max_length=120)
    is_active: Optional[bool] = None
    menu_id: Optional[str] = None


class QRCodeOut(CamelModel):
    id: str
    restaurant_id: str
    menu_id: Optional[str] = None
    table_number: Optional[str] = None
    name: Optional[str] = None
    qr_token: str
    is_active: bool
    scan_count: int
    last_scanned: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class QRCodeStats(CamelModel):
    total: int
    active: int
    inactive: int
    total_scans: int


class LanguageCount(CamelModel):
    language: str
    count: int


class QRCodeActivity(CamelModel):
    """One entry of a code's recent activity (an order placed from the table)."""
    type: str = "order"
    order_id: str
    status: str
    total_amount: Decimal
    timestamp: datetime


class QRCodeAnalytics(CamelModel):
    qr_code_id: str
    table_number: Optional[str] = None
    total_scans: int
    last_scanned: Optional[datetime] = None
    total_orders: int
    total_revenue: Decimal
    average_order_value: Decimal
    popular_languages: List[LanguageCount]
    popular_menu_items: List[TopMenuItem]
    hourly_activity: List[int]
    recent_activity: List[QRCodeActivity]
    period: str
    date_range: DateRange


class QRCodeAnalyticsResponse(CamelModel):
    success: bool = True
    data: QRCodeAnalytics


class QRCodeExportOut(QRCodeOut):
    """QR code with its order totals, as written by the export."""
    total_orders: int
    total_revenue: Decimal
    popular_languages: List[LanguageCount]


class PublicQRCodeOut(CamelModel):
    id: str
    restaurant_id: str
    menu_id: Optional[str] = None
    table_number: Optional[str] = None
    is_active: bool


# =============================================================================
# STAFF
# =============================================================================

class StaffCreate(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    name: Optional[str] = Field(None, max_length=120)
    password: str = Field(..., min_length=8, max_length=128)
    role: StaffRole = StaffRole.MANAGER
    restaurant_id: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v or v.startswith("@") or v.endswith("@"):
            raise ValueError("Invalid email format")
        return v


class StaffUpdate(CamelModel):
    name: Optional[str] = Field(None, max_length=120)
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    role: Optional[StaffRole] = None
    restaurant_id: Optional[str] = None
    is_active: Optional[bool] = None


class ManagerAssign(CamelModel):
    user_id: Optional[str] = None


class StaffOut(CamelModel):
    id: str
    email: str
    name: Optional[str] = None
    role: StaffRole
    restaurant_id: Optional[str] = None
    is_active: bool
    created_at: datetime


# =============================================================================
# GENERAL
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    timestamp: datetime
