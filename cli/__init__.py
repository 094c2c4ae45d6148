"""
CLI package for the Marketplace Order Intake System.

This package provides the command-line interface for document intake, order
queue workflow, catalog mapping and system configuration.
"""

from .version import BASE_VERSION as __version__
