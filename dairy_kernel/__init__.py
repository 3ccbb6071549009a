"""
Dairy Kernel - feed inventory and settlement core

A transactional ledger core for a dairy cooperative with:
- Feed inventory with reservation semantics
- Request approval/delivery workflow
- Automatic feed-cost deductions
- Atomic farmer settlement against milk revenue
"""

__version__ = "0.1.0"
