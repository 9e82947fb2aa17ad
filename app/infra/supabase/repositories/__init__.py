"""Shared repository base"""
from .base import BaseRepository

__all__ = ['BaseRepository']
