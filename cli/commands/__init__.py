"""
CLI command modules for the Marketplace Order Intake System.

This package contains all the command implementations organized by functional area:
- intake_commands: Document parsing, ingestion and the pick list
- queue_commands: Order queue workflow operations
- catalog_commands: Catalog products and identifier mappings
- config_commands: Configuration management operations
"""

# Import command groups for easy access
from . import (
    intake_commands,
    queue_commands,
    catalog_commands,
    config_commands
)

__all__ = [
    'intake_commands',
    'queue_commands',
    'catalog_commands',
    'config_commands'
]
