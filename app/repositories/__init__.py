"""
Repository layer exports.

This module exports all database repositories for easy import.
"""
from app.repositories import user_db_repository
from app.repositories import video_db_repository
from app.repositories import subscription_db_repository

__all__ = [
    'user_db_repository',
    'video_db_repository',
    'subscription_db_repository',
]
