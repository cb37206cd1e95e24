"""
Adapters layer - Appointment storage (Supabase, in-memory).
"""

from .memory_repository import MemoryRepository
from .repository import AppointmentRepository, CalendarDirectory
from .supabase_repository import SupabaseRepository

__all__ = ["AppointmentRepository", "CalendarDirectory", "MemoryRepository", "SupabaseRepository"]
