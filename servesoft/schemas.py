"""
Pydantic Schemas for Request/Response Validation

Version: 1.0.0
"""

import re
from datetime import date, datetime, time
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from servesoft.models import (
    AssignmentStatus,
    EmploymentStatus,
    OrderStatus,
    OrderType,
    ReservationStatus,
    StaffRole,
    TableState,
    UserRole,
)


EMAIL_PATTERN = re.compile(r'^[\w\.\+-]+@[\w\.-]+\.\w+$')


def normalize_email(v: str) -> str:
    v = v.strip().lower()
    if not EMAIL_PATTERN.match(v):
        raise ValueError('Invalid email format')
    return v


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# AUTH & USERS
# =============================================================================

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, examples=["Awa Ndiaye"])
    email: str = Field(..., examples=["awa@example.com"])
    password: str = Field(..., min_length=1, max_length=128)
    phone: Optional[str] = Field(None, max_length=20)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class LoginRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return v.strip().lower()


class UserProfile(BaseModel):
    id: int
    name: str
    full_name: str
    email: str
    phone: Optional[str]
    role: UserRole
    is_available: bool = False

    @classmethod
    def from_user(cls, user: Any) -> "UserProfile":
        return cls(
            id=user.id,
            name=user.full_name,
            full_name=user.full_name,
            email=user.email,
            phone=user.phone,
            role=user.role,
            is_available=bool(user.is_available),
        )


class AuthResponse(BaseModel):
    success: bool = True
    user: UserProfile


class UserResponse(ORMModel):
    id: int
    email: str
    full_name: str
    phone: Optional[str]
    role: UserRole
    is_available: bool
    created_at: Optional[datetime]


class RoleUpdate(BaseModel):
    role: UserRole


class AvailabilityUpdate(BaseModel):
    is_available: bool


# =============================================================================
# RESTAURANTS & MENU
# =============================================================================

class RestaurantCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    phone: str = Field(..., min_length=3, max_length=20)
    address: str = Field(..., min_length=1, max_length=255)
    town_city: str = Field(..., min_length=1, max_length=100)
    opening_hours: Optional[dict[str, Any]] = None
    delivery_zones: Optional[str] = None
    pre_order_lead_time_minutes: Optional[int] = Field(None, ge=0)
    delivery_fee_amount: Optional[float] = Field(None, ge=0)
    min_order_amount: float = Field(default=0.0, ge=0)


class RestaurantUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    phone: Optional[str] = Field(None, min_length=3, max_length=20)
    address: Optional[str] = Field(None, min_length=1, max_length=255)
    town_city: Optional[str] = Field(None, min_length=1, max_length=100)
    opening_hours: Optional[dict[str, Any]] = None
    delivery_zones: Optional[str] = None
    pre_order_lead_time_minutes: Optional[int] = Field(None, ge=0)
    delivery_fee_amount: Optional[float] = Field(None, ge=0)
    min_order_amount: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @field_validator(
        "name", "phone", "address", "town_city", "pre_order_lead_time_minutes",
        "delivery_fee_amount", "min_order_amount", "is_active",
    )
    @classmethod
    def not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class RestaurantResponse(ORMModel):
    id: int
    name: str
    description: Optional[str]
    phone: str
    address: str
    town_city: str
    opening_hours: Optional[dict[str, Any]]
    delivery_zones: Optional[str]
    pre_order_lead_time_minutes: int
    delivery_fee_amount: float
    min_order_amount: float
    is_active: bool
    created_at: Optional[datetime]


class RestaurantSummary(ORMModel):
    id: int
    name: str
    description: Optional[str]


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=150, examples=["Ndolé"])
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)
    price: float = Field(..., ge=0, examples=[3500])
    image_url: Optional[str] = Field(None, max_length=500)
    is_available: bool = True


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=50)
    price: Optional[float] = Field(None, ge=0)
    image_url: Optional[str] = Field(None, max_length=500)
    is_available: Optional[bool] = None

    @field_validator("name", "price", "is_available")
    @classmethod
    def not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("may be omitted but not null")
        return v


class MenuItemResponse(ORMModel):
    id: int
    restaurant_id: int
    name: str
    description: Optional[str]
    category: Optional[str]
    price: float
    image_url: Optional[str]
    is_available: bool


# =============================================================================
# CART
# =============================================================================

class CartItemAdd(BaseModel):
    menu_item_id: int
    quantity: int = Field(default=1, ge=1, le=99)
    notes: Optional[str] = Field(None, max_length=200)
    replace: bool = Field(
        default=False,
        description="Clear a cart holding another restaurant's items first"
    )


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., le=99, description="Zero or less removes the item")


class CartItemResponse(BaseModel):
    id: int
    menu_item_id: int
    name: str
    price: float
    quantity: int
    notes: Optional[str]
    line_total: float


class CartResponse(BaseModel):
    id: int
    restaurant_id: Optional[int]
    items: List[CartItemResponse]
    total_amount: float


# =============================================================================
# ORDERS
# =============================================================================

class OrderLine(BaseModel):
    menu_item_id: int
    quantity: int = Field(..., ge=1, le=99)
    notes: Optional[str] = Field(None, max_length=200)


class OrderDetails(BaseModel):
    """Fulfilment details shared by direct orders and cart checkout."""
    order_type: OrderType
    table_id: Optional[int] = None
    scheduled_for: Optional[datetime] = None
    customer_name: Optional[str] = Field(None, max_length=100)
    customer_phone: Optional[str] = Field(None, max_length=20)
    delivery_address: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode='after')
    def check_type_requirements(self) -> "OrderDetails":
        if self.order_type == OrderType.TABLE and self.table_id is None:
            raise ValueError('table_id is required for TABLE orders')
        if self.order_type == OrderType.DELIVERY and not (self.delivery_address or '').strip():
            raise ValueError('delivery_address is required for DELIVERY orders')
        if self.order_type == OrderType.PREORDER and self.scheduled_for is None:
            raise ValueError('scheduled_for is required for PREORDER orders')
        return self


class OrderCreate(OrderDetails):
    restaurant_id: int
    items: List[OrderLine] = Field(..., min_length=1)


class CheckoutRequest(OrderDetails):
    pass


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    reason: Optional[str] = Field(None, max_length=500)


class OrderItemResponse(ORMModel):
    id: int
    menu_item_id: Optional[int]
    item_snapshot: dict[str, Any]
    quantity: int
    unit_price: float
    subtotal: float
    notes: Optional[str]


class OrderResponse(ORMModel):
    id: int
    order_code: str
    restaurant_id: int
    customer_id: Optional[int]
    table_id: Optional[int]
    order_type: OrderType
    status: OrderStatus
    scheduled_for: Optional[datetime]
    customer_name: Optional[str]
    customer_phone: Optional[str]
    delivery_address: Optional[str]
    subtotal: float
    service_fee: float
    delivery_fee: float
    total_amount: float
    notes: Optional[str]
    cancellation_reason: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    completed_at: Optional[datetime]
    items: List[OrderItemResponse] = []


class OrderCreateResponse(BaseModel):
    success: bool
    message: str
    order_id: int
    order_code: str
    order_type: OrderType
    total_amount: float
    currency: str


class OrderListResponse(BaseModel):
    total: int
    orders: List[OrderResponse]


# =============================================================================
# TABLES
# =============================================================================

class TableCreate(BaseModel):
    table_number: str = Field(..., min_length=1, max_length=20)
    capacity: int = Field(default=4, ge=1, le=50)
    position_x: int = 0
    position_y: int = 0


class TableStateUpdate(BaseModel):
    state: TableState


class TableResponse(ORMModel):
    id: int
    restaurant_id: int
    table_number: str
    capacity: int
    state: TableState
    qr_code: Optional[str]
    position_x: int
    position_y: int


# =============================================================================
# RESERVATIONS
# =============================================================================

class ReservationCreate(BaseModel):
    restaurant_id: int
    reservation_date: date
    reservation_time: time
    party_size: int = Field(..., ge=1, le=50)
    customer_name: Optional[str] = Field(None, max_length=100)
    customer_phone: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = Field(None, max_length=500)


class ReservationStatusUpdate(BaseModel):
    status: ReservationStatus
    table_id: Optional[int] = Field(None, description="Table to seat the party at")


class ReservationResponse(ORMModel):
    id: int
    restaurant_id: int
    customer_id: Optional[int]
    table_id: Optional[int]
    customer_name: str
    customer_phone: Optional[str]
    reservation_date: date
    reservation_time: time
    party_size: int
    status: ReservationStatus
    notes: Optional[str]


# =============================================================================
# STAFF
# =============================================================================

class StaffCreate(BaseModel):
    email: str
    full_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    password: str = Field(..., min_length=1, max_length=128)
    staff_role: StaffRole = StaffRole.SERVER

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class StaffStatusUpdate(BaseModel):
    status: EmploymentStatus


class StaffMember(BaseModel):
    full_name: str
    email: str
    phone: Optional[str]


class StaffResponse(BaseModel):
    id: int
    user_id: int
    staff_role: StaffRole
    status: EmploymentStatus
    hired_date: Optional[date]
    user: StaffMember

    @classmethod
    def from_record(cls, record: Any) -> "StaffResponse":
        return cls(
            id=record.id,
            user_id=record.user_id,
            staff_role=record.staff_role,
            status=record.status,
            hired_date=record.hired_date,
            user=StaffMember(
                full_name=record.user.full_name,
                email=record.user.email,
                phone=record.user.phone,
            ),
        )


# =============================================================================
# DELIVERY
# =============================================================================

class AssignmentCreate(BaseModel):
    order_id: int
    driver_id: int


class AssignmentStatusUpdate(BaseModel):
    status: AssignmentStatus


class AssignmentOrderSummary(BaseModel):
    order_code: str
    customer_name: Optional[str]
    customer_phone: Optional[str]
    delivery_address: Optional[str]
    total_amount: float
    status: OrderStatus


class AssignmentResponse(BaseModel):
    id: int
    order_id: int
    driver_id: int
    status: AssignmentStatus
    created_at: Optional[datetime]
    accepted_at: Optional[datetime]
    picked_up_at: Optional[datetime]
    delivered_at: Optional[datetime]
    order: AssignmentOrderSummary

    @classmethod
    def from_assignment(cls, assignment: Any) -> "AssignmentResponse":
        order = assignment.order
        return cls(
            id=assignment.id,
            order_id=assignment.order_id,
            driver_id=assignment.driver_id,
            status=assignment.status,
            created_at=assignment.created_at,
            accepted_at=assignment.accepted_at,
            picked_up_at=assignment.picked_up_at,
            delivered_at=assignment.delivered_at,
            order=AssignmentOrderSummary(
                order_code=order.order_code,
                customer_name=order.customer_name,
                customer_phone=order.customer_phone,
                delivery_address=order.delivery_address,
                total_amount=order.total_amount,
                status=order.status,
            ),
        )


# =============================================================================
# DASHBOARD & HEALTH
# =============================================================================

class DashboardResponse(BaseModel):
    restaurant_id: int
    total_orders: int
    orders_by_status: dict[str, int]
    today_revenue: float
    avg_order_value: float
    tables_by_state: dict[str, int]
    pending_reservations: int
    recent_orders: List[dict[str, Any]]


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    redis: str
    timestamp: datetime
