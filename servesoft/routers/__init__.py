"""
API Routers

One router per area of the platform, mounted by ``servesoft.main``.
"""

from servesoft.routers import (
    auth,
    cart,
    dashboard,
    delivery,
    menu,
    orders,
    reservations,
    restaurants,
    staff,
    tables,
    users,
)

all_routers = [
    auth.router,
    users.router,
    restaurants.router,
    menu.router,
    cart.router,
    orders.router,
    tables.router,
    reservations.router,
    staff.router,
    delivery.router,
    dashboard.router,
]

__all__ = ["all_routers"]
