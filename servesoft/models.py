"""
SQLAlchemy Database Models

Relational model for the restaurant platform:
- Users with roles (customer, staff, manager, admin)
- Restaurants, menu items, tables
- Carts, orders and order line items
- Reservations, employment records, delivery assignments

Version: 1.0.0
"""

import enum
from datetime import date

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from servesoft.database import Base


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, enum.Enum):
    """Platform roles. STAFF covers delivery drivers."""
    CUSTOMER = "CUSTOMER"
    STAFF = "STAFF"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


class OrderType(str, enum.Enum):
    """TABLE is dine-in, PREORDER is pickup."""
    TABLE = "TABLE"
    PREORDER = "PREORDER"
    DELIVERY = "DELIVERY"


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    RECEIVED = "RECEIVED"
    IN_PREP = "IN_PREP"
    READY = "READY"
    PICKED_UP = "PICKED_UP"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    COMPLETED = "COMPLETED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class TableState(str, enum.Enum):
    FREE = "FREE"
    HELD = "HELD"
    SEATED = "SEATED"
    CLEANING = "CLEANING"


class ReservationStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SEATED = "SEATED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class StaffRole(str, enum.Enum):
    SERVER = "SERVER"
    KITCHEN = "KITCHEN"
    DRIVER = "DRIVER"
    MANAGER = "MANAGER"


class EmploymentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class AssignmentStatus(str, enum.Enum):
    """Delivery assignment workflow."""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    PICKED_UP = "PICKED_UP"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


# An order holds at most one assignment in one of these states
LIVE_ASSIGNMENT_STATUSES = frozenset({
    AssignmentStatus.PENDING,
    AssignmentStatus.ACCEPTED,
    AssignmentStatus.PICKED_UP,
    AssignmentStatus.OUT_FOR_DELIVERY,
})


# =============================================================================
# USERS
# =============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(Enum(UserRole), default=UserRole.CUSTOMER, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    # Delivery drivers toggle this from their dashboard
    is_available = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<User #{self.id} - {self.email} - {self.role.value}>"


# =============================================================================
# RESTAURANTS & MENU
# =============================================================================

class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    phone = Column(String(20), nullable=False)
    address = Column(String(255), nullable=False)
    town_city = Column(String(100), nullable=False)
    opening_hours = Column(JSON, nullable=True)
    delivery_zones = Column(Text, nullable=True)

    pre_order_lead_time_minutes = Column(Integer, nullable=False, default=30)
    delivery_fee_amount = Column(Float, nullable=False, default=0.0)
    min_order_amount = Column(Float, nullable=False, default=0.0)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Restaurant #{self.id} - {self.name}>"


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(150), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True)
    price = Column(Float, nullable=False)
    image_url = Column(String(500), nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.name} - {self.price}>"


class Table(Base):
    __tablename__ = "tables"
    __table_args__ = (
        UniqueConstraint("restaurant_id", "table_number", name="uq_table_number"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    table_number = Column(String(20), nullable=False)
    capacity = Column(Integer, nullable=False, default=4)
    state = Column(Enum(TableState), default=TableState.FREE, nullable=False, index=True)
    qr_code = Column(String(100), nullable=True)
    position_x = Column(Integer, nullable=False, default=0)
    position_y = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Table {self.table_number} @ {self.restaurant_id} - {self.state.value}>"


# =============================================================================
# CART
# =============================================================================

class Cart(Base):
    """One cart per customer, bound to a single restaurant while it has items."""
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartItem.id",
    )


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    cart_id = Column(Integer, ForeignKey("carts.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    notes = Column(Text, nullable=True)

    cart = relationship("Cart", back_populates="items")
    menu_item = relationship("MenuItem", lazy="selectin")


# =============================================================================
# ORDERS
# =============================================================================

class Order(Base):
    """
    Order header. Monetary totals are always derived from the line items:
    total_amount = subtotal + service_fee + delivery_fee.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_code = Column(String(20), nullable=False, unique=True, index=True)

    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=True)

    order_type = Column(Enum(OrderType), nullable=False, index=True)
    status = Column(Enum(OrderStatus), default=OrderStatus.RECEIVED, nullable=False, index=True)
    scheduled_for = Column(DateTime(timezone=True), nullable=True)

    # =========================================================================
    # CUSTOMER CONTACT
    # =========================================================================
    customer_name = Column(String(100), nullable=True)
    customer_phone = Column(String(20), nullable=True)
    delivery_address = Column(Text, nullable=True)

    # =========================================================================
    # PRICING
    # =========================================================================
    subtotal = Column(Float, nullable=False)
    service_fee = Column(Float, nullable=False, default=0.0)
    delivery_fee = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False)

    notes = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id",
    )

    def __repr__(self):
        return f"<Order {self.order_code} - {self.order_type.value} - {self.status.value}>"


class OrderItem(Base):
    """Line item with a snapshot of the menu item at order time."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=True)
    item_snapshot = Column(JSON, nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    subtotal = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)

    order = relationship("Order", back_populates="items")


# =============================================================================
# RESERVATIONS
# =============================================================================

class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=True)

    customer_name = Column(String(100), nullable=False)
    customer_phone = Column(String(20), nullable=True)
    reservation_date = Column(Date, nullable=False)
    reservation_time = Column(Time, nullable=False)
    party_size = Column(Integer, nullable=False)
    status = Column(
        Enum(ReservationStatus),
        default=ReservationStatus.PENDING,
        nullable=False,
        index=True
    )
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


# =============================================================================
# STAFF & DELIVERY
# =============================================================================

class EmploymentRecord(Base):
    """Links a staff user to a restaurant."""
    __tablename__ = "employment_records"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    staff_role = Column(Enum(StaffRole), default=StaffRole.SERVER, nullable=False)
    status = Column(
        Enum(EmploymentStatus),
        default=EmploymentStatus.ACTIVE,
        nullable=False,
        index=True
    )
    hired_date = Column(Date, default=date.today, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", lazy="selectin")


class DeliveryAssignment(Base):
    __tablename__ = "delivery_assignments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(
        Enum(AssignmentStatus),
        default=AssignmentStatus.PENDING,
        nullable=False,
        index=True
    )

    accepted_at = Column(DateTime(timezone=True), nullable=True)
    picked_up_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    order = relationship("Order", lazy="selectin")

    def __repr__(self):
        return f"<DeliveryAssignment #{self.id} order={self.order_id} - {self.status.value}>"


_live_assignment = DeliveryAssignment.status.in_(
    sorted(status.value for status in LIVE_ASSIGNMENT_STATUSES)
)

Index(
    "uq_live_assignment_per_order",
    DeliveryAssignment.order_id,
    unique=True,
    postgresql_where=_live_assignment,
    sqlite_where=_live_assignment,
)
