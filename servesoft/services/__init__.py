"""
                        Services Module

Business logic shared by the API routers and background workers.

Services:
    - ordering: order validation, pricing and placement
    - excel_manager: locked Excel export of placed orders
"""

from servesoft.services.excel_manager import ExcelManager

__all__ = ["ExcelManager"]
