"""
Database package for the Marketplace Order Intake System.

This package provides database management functionality including:
- DatabaseManager for catalog, alias, order queue and configuration storage
- Model classes for data structures
"""

from .database import DatabaseManager
from .models import Product, SkuAlias, OrderQueueEntry, Configuration, DEFAULT_CONFIG
from .models import (
    ValidationError, DatabaseError, ProductNotFoundError, ConfigurationError,
    InvalidStatusTransitionError
)

__all__ = [
    'DatabaseManager',
    'Product',
    'SkuAlias',
    'OrderQueueEntry',
    'Configuration',
    'DEFAULT_CONFIG',
    'ValidationError',
    'DatabaseError',
    'ProductNotFoundError',
    'ConfigurationError',
    'InvalidStatusTransitionError'
]
