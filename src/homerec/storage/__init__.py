"""Disk sampling, file inventory and space reclamation."""

from homerec.storage.disk import DiskSampler
from homerec.storage.inventory import FileInventory
from homerec.storage.reclaimer import Reclaimer, compute_deficit, order_candidates

__all__ = [
    "DiskSampler",
    "FileInventory",
    "Reclaimer",
    "compute_deficit",
    "order_candidates",
]
