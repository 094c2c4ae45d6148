"""
Configuration management commands for the CLI interface.

This module implements configuration-related commands including:
- get: Get configuration value
- set: Set configuration value
- list: List all configurations
- reset: Reset configuration to defaults
"""

import json
import logging
import re

import click

from cli.context import pass_context
from cli.exceptions import CLIError, ValidationError as CLIValidationError
from cli.formatters import print_success, print_info, print_warning, format_table, format_json
from database.models import ConfigurationError, DatabaseError, ValidationError, DEFAULT_CONFIG


logger = logging.getLogger(__name__)

_CONFIG_KEY_PATTERN = re.compile(r'^[a-z][a-z0-9_]*$')


def validate_configuration_key(key: str) -> str:
    """
    Validate configuration key format.

    Returns:
        Normalized configuration key

    Raises:
        CLIValidationError: If key format is invalid
    """
    key = (key or '').strip().lower()
    if not key:
        raise CLIValidationError("Configuration key cannot be empty")
    if not _CONFIG_KEY_PATTERN.match(key) or len(key) > 50:
        raise CLIValidationError(
            "Configuration key must start with a letter and contain only "
            "lowercase letters, numbers, and underscores"
        )
    return key


def _auto_detect_type(value: str) -> str:
    """Auto-detect the data type of a new configuration value."""
    if value.lower() in ('true', 'false', 'yes', 'no', 'on', 'off'):
        return 'boolean'
    try:
        float(value)
        return 'number'
    except ValueError:
        pass
    if value.startswith(('{', '[')):
        try:
            json.loads(value)
            return 'json'
        except json.JSONDecodeError:
            pass
    return 'string'


# Create config command group
@click.group(name='config')
def config_group():
    """Configuration management commands."""
    pass


@config_group.command()
@click.argument('key', type=str)
@click.option('--format', '-f', 'output_format', type=click.Choice(['value', 'json']), default='value',
              help='Output format')
@pass_context
def get(ctx, key, output_format):
    """
    Retrieve a configuration value.

    Examples:
        order-intake config get line_y_tolerance
        order-intake config get default_platform --format json
    """
    key = validate_configuration_key(key)
    try:
        config = ctx.get_db_manager().get_config(key)
        if output_format == 'value':
            click.echo(str(config.get_typed_value()))
        else:
            click.echo(format_json({
                'key': config.key,
                'value': config.get_typed_value(),
                'data_type': config.data_type,
                'description': config.description,
                'category': config.category,
                'last_updated': config.last_updated
            }))
    except ConfigurationError:
        raise CLIError(f"Configuration not found: {key}")
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")


@config_group.command(name='set')
@click.argument('key', type=str)
@click.argument('value', type=str)
@click.option('--type', '-t', 'data_type', type=click.Choice(['string', 'number', 'boolean', 'json']),
              help='Value type for new keys (auto-detected if not specified)')
@click.option('--description', '-d', type=str, help='Configuration description')
@click.option('--category', '-c', type=str, default='general', help='Configuration category for new keys')
@pass_context
def set_value(ctx, key, value, data_type, description, category):
    """
    Set a configuration value.

    Existing keys keep their stored type.

    Examples:
        order-intake config set wrap_tolerance 16
        order-intake config set default_platform flipkart
    """
    key = validate_configuration_key(key)
    try:
        db_manager = ctx.get_db_manager()
        try:
            db_manager.get_config(key)
            exists = True
        except ConfigurationError:
            exists = False

        typed_value = value
        if not exists:
            data_type = data_type or _auto_detect_type(value)
            if data_type == 'json':
                typed_value = json.loads(value)

        db_manager.set_config_value(
            key=key, value=typed_value, data_type=data_type,
            description=description, category=category
        )
        print_success(f"Configuration '{key}' set to {db_manager.get_config_value(key)}")
    except (ValidationError, json.JSONDecodeError) as e:
        raise CLIValidationError(str(e))
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")


@config_group.command(name='list')
@click.option('--category', '-c', type=str, help='Filter by category')
@click.option('--format', '-f', 'output_format', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@pass_context
def list_configs(ctx, category, output_format):
    """
    List configuration settings.

    Examples:
        order-intake config list --category parsing
    """
    try:
        configs = ctx.get_db_manager().list_config(category=category)
        if not configs:
            print_info("No configurations found.")
            return

        if output_format == 'json':
            click.echo(format_json([
                {
                    'key': c.key,
                    'value': c.get_typed_value(),
                    'data_type': c.data_type,
                    'category': c.category,
                    'description': c.description
                }
                for c in configs
            ]))
            return

        click.echo(format_table([
            {
                'Key': c.key,
                'Value': str(c.get_typed_value()),
                'Type': c.data_type,
                'Category': c.category,
                'Description': c.description or ''
            }
            for c in configs
        ]))
        print_info(f"Found {len(configs)} configuration(s)")
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")


@config_group.command()
@click.argument('key', type=str, required=False)
@click.option('--force', is_flag=True, help='Skip confirmation prompt')
@pass_context
def reset(ctx, key, force):
    """
    Reset configuration to default values.

    Examples:
        order-intake config reset wrap_tolerance
        order-intake config reset --force
    """
    keys = [validate_configuration_key(key)] if key else list(DEFAULT_CONFIG)
    for name in keys:
        if name not in DEFAULT_CONFIG:
            raise CLIError(f"No default value available for configuration '{name}'")

    if not key:
        print_warning("This will reset ALL default configurations.")
    if not force and not click.confirm("Proceed with reset?", default=key is not None):
        print_info("Reset cancelled.")
        return

    try:
        db_manager = ctx.get_db_manager()
        for name in keys:
            default = DEFAULT_CONFIG[name]
            db_manager.set_config_value(
                key=default.key,
                value=default.get_typed_value(),
                data_type=default.data_type,
                description=default.description,
                category=default.category
            )
        print_success(f"Reset {len(keys)} configuration(s) to default values")
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")
