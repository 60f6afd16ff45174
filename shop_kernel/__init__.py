"""
Shop Kernel - inventory-consistent billing for a repair shop.

- Atomic stock reservation and release
- Repair parts consumption with price snapshots
- Accessory point-of-sale recording
- Bill composition with tax and one-bill-per-repair
- Typed errors surfaced through a single operation facade
"""

__version__ = "0.1.0"
