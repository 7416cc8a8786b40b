"""
MatrixHub DB Toolkit

Deployment and operations toolkit for the MatrixHub PostgreSQL instance.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from matrixhub_db.core.config import Settings, get_settings
from matrixhub_db.core.exceptions import MatrixHubDBError

__all__ = [
    "MatrixHubDBError",
    "Settings",
    "get_settings",
]
