"""
Database models - import all models here so Alembic can discover them.
"""
from leadline.models.customer import Customer
from leadline.models.message import Message

__all__ = [
    "Customer",
    "Message",
]
