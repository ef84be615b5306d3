"""
Adapters layer - Loading salon data from files into domain records.
"""

from .file_repository import FileSalonRepository
from .schemas import SalonDataModel, parse_salon_data

__all__ = ["FileSalonRepository", "SalonDataModel", "parse_salon_data"]
