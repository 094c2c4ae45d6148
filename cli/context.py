"""
CLI Context module for the Marketplace Order Intake System.

This module provides the shared context and decorators used across CLI commands,
preventing circular imports between cli.main and command modules.
"""

import os

import click

from database.database import DatabaseManager


DATABASE_ENV_VAR = 'ORDER_INTAKE_DB'
DEFAULT_DATABASE_PATH = "order_intake.db"


class CLIContext:
    """Context object to share state between CLI commands."""

    def __init__(self):
        self.verbose = False
        self.quiet = False
        # Check for environment variable first, then use default
        self.database_path = os.environ.get(DATABASE_ENV_VAR, DEFAULT_DATABASE_PATH)
        self.db_manager = None

    def get_db_manager(self) -> DatabaseManager:
        """Get or create database manager instance."""
        if self.db_manager is None:
            self.db_manager = DatabaseManager(self.database_path)
        return self.db_manager


# Pass context between commands
pass_context = click.make_pass_decorator(CLIContext, ensure=True)
