"""
                        Services Module

Business logic behind the API routers. Services take an ``AsyncSession``
and raise ``qrmenu.core.exceptions`` errors; they never build HTTP responses.

Services:
    - order_status: status enum and drop-target rules (no database access)
    - orders: submission, board queries, status updates, statistics
    - catalog: restaurants, menus, categories, items
    - qr_codes: table QR codes and scan tracking
    - staff: staff accounts and password hashing
    - exporter: CSV / Excel export of orders
"""
