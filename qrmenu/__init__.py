"""
                QR Menu & Orders

Multi-tenant restaurant menu and ordering backend with a QR-code ordering
flow and an order board that applies status changes optimistically.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
