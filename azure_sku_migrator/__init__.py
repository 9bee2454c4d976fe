"""Azure SKU Migrator: dependency-aware migration off deprecated Azure SKUs"""

__version__ = "1.0.0"
