from typing import Optional

from api.backend import BackendAPI
from storage.repository import PlannerRepository

# Global instances initialized at startup (or lazily on first request)
repository: Optional[PlannerRepository] = None
backend: Optional[BackendAPI] = None
