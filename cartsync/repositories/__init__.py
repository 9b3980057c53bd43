"""Supabase repositories."""
from .base import BaseRepository
from .order_repo import OrderRepository

__all__ = ["BaseRepository", "OrderRepository"]
