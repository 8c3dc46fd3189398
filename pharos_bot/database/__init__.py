"""
Database module for Pharos Testnet Bot
Handles accounts, cached auth tokens and action statistics
"""

from .database import Database

__all__ = ['Database']
