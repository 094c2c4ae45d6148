"""
Catalog commands for the CLI interface.

This module implements the manual mapping workflow:
- add-product: Add a canonical product
- add-alias: Map a marketplace identifier to a product
- resolve: Show how an identifier resolves
- list: List catalog products
"""

import logging

import click

from cli.context import pass_context
from cli.exceptions import CLIError, ValidationError as CLIValidationError
from cli.formatters import print_success, print_info, print_warning, format_table
from database.models import (
    ALIAS_TYPES, DatabaseError, Product, ProductNotFoundError, SkuAlias, ValidationError
)
from parsing.identifiers import IdentifierResolver, Resolved


logger = logging.getLogger(__name__)


@click.group(name='catalog')
def catalog_group():
    """Catalog and identifier mapping commands."""
    pass


@catalog_group.command(name='add-product')
@click.argument('master_sku', type=str)
@click.argument('name', type=str)
@click.option('--barcode', '-b', type=str, help='Barcode printed on the product')
@pass_context
def add_product(ctx, master_sku, name, barcode):
    """
    Add a product to the catalog.

    Examples:
        order-intake catalog add-product TSHIRT-BLK-M "Black T-Shirt M" --barcode 8901234567890
    """
    try:
        product = ctx.get_db_manager().create_product(
            Product(master_sku=master_sku, name=name, barcode=barcode)
        )
        print_success(f"Added product {product.master_sku} (id {product.id})")
    except ValidationError as e:
        raise CLIValidationError(str(e))
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")


@catalog_group.command(name='add-alias')
@click.argument('platform', type=str)
@click.argument('alias_value', type=str)
@click.argument('master_sku', type=str)
@click.option('--alias-type', '-t', type=click.Choice(ALIAS_TYPES), default='marketplace_sku',
              help='Kind of identifier being mapped')
@pass_context
def add_alias(ctx, platform, alias_value, master_sku, alias_type):
    """
    Map a marketplace identifier onto a catalog product.

    The identifier is stored exactly as given and only ever matches exactly.

    Examples:
        order-intake catalog add-alias flipkart TSB-0042-M TSHIRT-BLK-M
    """
    try:
        db_manager = ctx.get_db_manager()
        product = db_manager.get_product(master_sku)
        alias = db_manager.create_alias(SkuAlias(
            platform=platform, alias_value=alias_value, product_id=product.id, alias_type=alias_type
        ))
        print_success(f"Mapped {alias.platform}:{alias.alias_value} to {product.master_sku}")
        print_info("Run 'order-intake queue remap' to resolve queued lines")
    except ProductNotFoundError:
        raise CLIError(f"Product not found: {master_sku}")
    except ValidationError as e:
        raise CLIValidationError(str(e))
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")


@catalog_group.command()
@click.argument('platform', type=str)
@click.argument('identifier', type=str)
@pass_context
def resolve(ctx, platform, identifier):
    """
    Show how a marketplace identifier resolves.

    Examples:
        order-intake catalog resolve flipkart TSB-0042-M
    """
    try:
        result = IdentifierResolver(ctx.get_db_manager()).resolve(identifier, platform)
        if isinstance(result, Resolved):
            print_success(f"{identifier} -> {result.canonical_sku} (via {result.matched_via})")
        else:
            print_warning(f"{identifier} is unresolved for {platform}")
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")


@catalog_group.command(name='list')
@click.option('--active-only', is_flag=True, help='Only show active products')
@pass_context
def list_products(ctx, active_only):
    """List catalog products."""
    try:
        products = ctx.get_db_manager().list_products(active_only=active_only)
        if not products:
            print_info("Catalog is empty.")
            return
        click.echo(format_table([
            {
                'ID': p.id,
                'Master SKU': p.master_sku,
                'Name': p.name,
                'Barcode': p.barcode or '',
                'Active': p.is_active
            }
            for p in products
        ]))
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")
