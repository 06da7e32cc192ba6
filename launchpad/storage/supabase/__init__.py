"""
Supabase integration package for auth and pitch-deck storage.
"""

from .client import supabase, initialize_supabase, get_supabase
from .pitch_deck_uploader import upload_pitch_deck, pitch_deck_key

__all__ = [
    'supabase',
    'initialize_supabase',
    'get_supabase',
    'upload_pitch_deck',
    'pitch_deck_key',
]
