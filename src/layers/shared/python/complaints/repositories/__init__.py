"""DynamoDB repositories."""

from complaints.repositories.base import BaseRepository
from complaints.repositories.complaint import ComplaintRepository

__all__ = [
    "BaseRepository",
    "ComplaintRepository",
]
