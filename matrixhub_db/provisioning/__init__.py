"""
Provisioning module - Existence checks and idempotent create-or-skip
"""

from matrixhub_db.provisioning.checker import ExistenceChecker
from matrixhub_db.provisioning.provisioner import Provisioner

__all__ = [
    "ExistenceChecker",
    "Provisioner",
]
