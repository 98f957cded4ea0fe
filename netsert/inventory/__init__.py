"""Device inventory for netsert.

Provides named host groups loaded from YAML or Ansible-style INI files,
used to expand ``@group`` targets in assertion files.
"""

from .inventory_manager import Inventory, InventoryDefaults, auto_discover, load

__all__ = ["Inventory", "InventoryDefaults", "auto_discover", "load"]
