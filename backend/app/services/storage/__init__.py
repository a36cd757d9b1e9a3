"""
Storage module
Supabase-backed persistence for every entity the engines consume
"""
from .repository import SupabaseRepository

__all__ = ['SupabaseRepository']
