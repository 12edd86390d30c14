"""
                ServeSoft Restaurant Platform

Multi-role restaurant ordering and operations backend: menus, carts,
dine-in/pickup/delivery orders, tables, reservations, staff and
delivery assignments.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
