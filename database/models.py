"""
Data models and validation classes for the Marketplace Order Intake System.

This module defines the data structures and validation logic for all database entities
including Products, SKU Aliases, Order Queue entries and Configuration.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Literal, Any, Dict, Union, Tuple
import re
import json


class ValidationError(Exception):
    """Raised when data validation fails."""
    pass


class DatabaseError(Exception):
    """Base exception for database-related errors."""
    pass


class ProductNotFoundError(DatabaseError):
    """Raised when a requested product is not found."""
    pass


class ConfigurationError(DatabaseError):
    """Raised when configuration operations fail."""
    pass


class InvalidStatusTransitionError(DatabaseError):
    """Raised when an order queue entry is moved to a status it cannot reach."""
    pass


WORKFLOW_STATUSES = ('pending', 'listed', 'archived')

# Entries only ever move forward: pending -> listed -> archived
ALLOWED_TRANSITIONS = {
    'pending': ('listed',),
    'listed': ('archived',),
    'archived': (),
}

# Statuses that take part in duplicate suppression and pick lists
ACTIVE_STATUSES = ('pending', 'listed')

ALIAS_TYPES = ('marketplace_sku', 'barcode')

QUANTITY_SOURCES = ('explicit_label', 'column', 'proximity', 'ocr', 'default_guess')
QUANTITY_CONFIDENCES = ('high', 'medium', 'low')

_PLATFORM_PATTERN = re.compile(r'^[a-z][a-z0-9_]*$')


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Convert a stored ISO timestamp back to a datetime."""
    if not value:
        return None
    return datetime.fromisoformat(value)


def _validate_identifier_text(value: Optional[str], field_name: str) -> None:
    """
    Validate a stored identifier.

    Identifiers are matched by exact string equality, so they are stored exactly
    as given. Surrounding whitespace is rejected instead of trimmed.

    Raises:
        ValidationError: If the identifier is empty or padded
    """
    if not value or not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a non-empty string")
    if value != value.strip():
        raise ValidationError(f"{field_name} cannot have leading or trailing whitespace")


def _validate_platform(platform: Optional[str]) -> None:
    if not platform or not isinstance(platform, str):
        raise ValidationError("Platform must be a non-empty string")
    if not _PLATFORM_PATTERN.match(platform):
        raise ValidationError(
            "Platform must be lowercase letters, digits and underscores (e.g. 'myntra')"
        )


@dataclass
class Product:
    """
    Represents a product in the canonical catalog.

    Attributes:
        master_sku: Canonical SKU every marketplace identifier resolves to
        name: Human-readable product name
        barcode: Secondary physical identifier printed on the product
        id: Auto-incrementing primary key
        is_active: Soft delete flag for deactivating products
        created_date: When the product was added to the catalog
        last_updated: When the product was last modified
    """
    master_sku: str
    name: str
    barcode: Optional[str] = None
    id: Optional[int] = None
    is_active: bool = True
    created_date: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    def __post_init__(self):
        """Validate product data after initialization."""
        self.validate()

    def validate(self) -> None:
        """
        Validate product data according to business rules.

        Raises:
            ValidationError: If validation fails
        """
        _validate_identifier_text(self.master_sku, "Master SKU")

        if not self.name or not isinstance(self.name, str) or not self.name.strip():
            raise ValidationError("Product name must be a non-empty string")

        if self.barcode is not None:
            _validate_identifier_text(self.barcode, "Barcode")

        if not isinstance(self.is_active, bool):
            raise ValidationError("is_active must be a boolean")

    def to_dict(self) -> Dict[str, Any]:
        """Convert product to dictionary for database operations."""
        return {
            'id': self.id,
            'master_sku': self.master_sku,
            'name': self.name,
            'barcode': self.barcode,
            'is_active': self.is_active,
            'created_date': self.created_date.isoformat() if self.created_date else None,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        """Create Product instance from dictionary."""
        return cls(
            id=data.get('id'),
            master_sku=data['master_sku'],
            name=data['name'],
            barcode=data.get('barcode'),
            is_active=data.get('is_active', True),
            created_date=_parse_timestamp(data.get('created_date')),
            last_updated=_parse_timestamp(data.get('last_updated'))
        )


@dataclass
class SkuAlias:
    """
    Maps a marketplace-specific identifier onto a catalog product.

    Aliases are what the manual mapping workflow creates when an order line
    arrives with an identifier the catalog does not know yet.

    Attributes:
        platform: Marketplace the alias belongs to (e.g. 'flipkart')
        alias_value: Identifier exactly as printed on the marketplace document
        product_id: Catalog product the alias resolves to
        alias_type: Kind of identifier ('marketplace_sku' or 'barcode')
        id: Auto-incrementing primary key
        created_date: When the alias was created
    """
    platform: str
    alias_value: str
    product_id: int
    alias_type: Literal['marketplace_sku', 'barcode'] = 'marketplace_sku'
    id: Optional[int] = None
    created_date: Optional[datetime] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Validate alias data according to business rules.

        Raises:
            ValidationError: If validation fails
        """
        _validate_platform(self.platform)
        _validate_identifier_text(self.alias_value, "Alias value")

        if self.alias_type not in ALIAS_TYPES:
            raise ValidationError(f"Alias type must be one of: {', '.join(ALIAS_TYPES)}")

        if not isinstance(self.product_id, int) or isinstance(self.product_id, bool) or self.product_id <= 0:
            raise ValidationError("Product id must be a positive integer")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'platform': self.platform,
            'alias_type': self.alias_type,
            'alias_value': self.alias_value,
            'product_id': self.product_id,
            'created_date': self.created_date.isoformat() if self.created_date else None
        }


@dataclass
class OrderQueueEntry:
    """
    Represents one ingested order line waiting to be picked.

    Attributes:
        platform: Marketplace the order came from
        order_id: Marketplace order identifier
        marketplace_identifier: SKU/identifier exactly as printed on the document
        quantity: Units ordered (always positive)
        description: Free-text product description from the document
        canonical_sku: Resolved catalog SKU, None while unresolved
        product_ref: Resolved catalog product id, None while unresolved
        display_sku: Value shown to operators; may fall back to the marketplace
            identifier for formats that require a non-empty SKU column. Never
            used for resolution or aggregation.
        workflow_status: 'pending', 'listed' or 'archived'
        source_file_ref: Reference to the document the line was parsed from
        page_number: Page of the source document holding the line
        quantity_source: How the quantity was obtained
        quantity_confidence: Confidence attached to the quantity
        id: Auto-incrementing primary key
        created_date: When the entry was ingested
        last_updated: When the entry last changed status or resolution
    """
    platform: str
    order_id: str
    marketplace_identifier: str
    quantity: int
    description: Optional[str] = None
    canonical_sku: Optional[str] = None
    product_ref: Optional[int] = None
    display_sku: Optional[str] = None
    workflow_status: Literal['pending', 'listed', 'archived'] = 'pending'
    source_file_ref: Optional[str] = None
    page_number: Optional[int] = None
    quantity_source: str = 'default_guess'
    quantity_confidence: str = 'low'
    id: Optional[int] = None
    created_date: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Validate order queue data according to business rules.

        Raises:
            ValidationError: If validation fails
        """
        _validate_platform(self.platform)
        _validate_identifier_text(self.order_id, "Order id")
        _validate_identifier_text(self.marketplace_identifier, "Marketplace identifier")

        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool):
            raise ValidationError("Quantity must be an integer")
        if self.quantity <= 0:
            raise ValidationError("Quantity must be positive")

        if self.workflow_status not in WORKFLOW_STATUSES:
            raise ValidationError(f"Workflow status must be one of: {', '.join(WORKFLOW_STATUSES)}")

        if self.quantity_source not in QUANTITY_SOURCES:
            raise ValidationError(f"Quantity source must be one of: {', '.join(QUANTITY_SOURCES)}")

        if self.quantity_confidence not in QUANTITY_CONFIDENCES:
            raise ValidationError(
                f"Quantity confidence must be one of: {', '.join(QUANTITY_CONFIDENCES)}"
            )

        # A resolution is all or nothing
        if (self.canonical_sku is None) != (self.product_ref is None):
            raise ValidationError("canonical_sku and product_ref must be set together")

    @property
    def dedup_key(self) -> Tuple[str, str, str]:
        """Key identifying a logically unique order line."""
        return (self.order_id, self.marketplace_identifier, self.platform)

    @property
    def is_resolved(self) -> bool:
        return self.canonical_sku is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert order queue entry to dictionary for serialization."""
        return {
            'id': self.id,
            'platform': self.platform,
            'order_id': self.order_id,
            'marketplace_identifier': self.marketplace_identifier,
            'canonical_sku': self.canonical_sku,
            'product_ref': self.product_ref,
            'display_sku': self.display_sku,
            'description': self.description,
            'quantity': self.quantity,
            'quantity_source': self.quantity_source,
            'quantity_confidence': self.quantity_confidence,
            'workflow_status': self.workflow_status,
            'source_file_ref': self.source_file_ref,
            'page_number': self.page_number,
            'created_date': self.created_date.isoformat() if self.created_date else None,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OrderQueueEntry':
        """Create OrderQueueEntry instance from dictionary."""
        return cls(
            id=data.get('id'),
            platform=data['platform'],
            order_id=data['order_id'],
            marketplace_identifier=data['marketplace_identifier'],
            quantity=int(data['quantity']),
            description=data.get('description'),
            canonical_sku=data.get('canonical_sku'),
            product_ref=data.get('product_ref'),
            display_sku=data.get('display_sku'),
            workflow_status=data.get('workflow_status', 'pending'),
            source_file_ref=data.get('source_file_ref'),
            page_number=data.get('page_number'),
            quantity_source=data.get('quantity_source', 'default_guess'),
            quantity_confidence=data.get('quantity_confidence', 'low'),
            created_date=_parse_timestamp(data.get('created_date')),
            last_updated=_parse_timestamp(data.get('last_updated'))
        )


@dataclass
class Configuration:
    """
    Represents a configuration setting.

    Attributes:
        key: Configuration setting name (primary key)
        value: Configuration value stored as text
        data_type: Type hint for value parsing ('string', 'number', 'boolean', 'json')
        description: Human-readable description of the setting
        category: Grouping for related settings
        created_date: When the setting was first created
        last_updated: When the setting was last modified
    """
    key: str
    value: str
    data_type: Literal['string', 'number', 'boolean', 'json'] = 'string'
    description: Optional[str] = None
    category: str = 'general'
    created_date: Optional[datetime] = None
    last_updated: Optional[datetime] = None

    def __post_init__(self):
        """Validate configuration data after initialization."""
        self.validate()

    def validate(self) -> None:
        """
        Validate configuration data according to business rules.

        Raises:
            ValidationError: If validation fails
        """
        if not self.key or not isinstance(self.key, str) or not self.key.strip():
            raise ValidationError("Configuration key must be a non-empty string")

        if not isinstance(self.value, str):
            raise ValidationError("Configuration value must be a string")

        if self.data_type not in ('string', 'number', 'boolean', 'json'):
            raise ValidationError("Data type must be one of: string, number, boolean, json")

        # Empty values are allowed while a typed value is being set
        if self.value:
            try:
                self.get_typed_value()
            except (ValueError, json.JSONDecodeError) as e:
                raise ValidationError(f"Value '{self.value}' is not valid for data type '{self.data_type}': {e}")

    def get_typed_value(self) -> Union[str, float, bool, Dict, list]:
        """
        Get the configuration value converted to its proper type.

        Returns:
            The value converted according to data_type

        Raises:
            ValueError: If value cannot be converted to the specified type
        """
        if self.data_type == 'string':
            return self.value
        elif self.data_type == 'number':
            return float(self.value)
        elif self.data_type == 'boolean':
            if self.value.lower() in ('true', '1', 'yes', 'on'):
                return True
            elif self.value.lower() in ('false', '0', 'no', 'off'):
                return False
            raise ValueError(f"Cannot convert '{self.value}' to boolean")
        elif self.data_type == 'json':
            return json.loads(self.value)
        raise ValueError(f"Unknown data type: {self.data_type}")

    def set_typed_value(self, value: Union[str, float, bool, Dict, list]) -> None:
        """
        Set the configuration value from a typed value.

        Args:
            value: The value to set, will be converted to string representation
        """
        if self.data_type == 'string':
            self.value = str(value)
        elif self.data_type == 'number':
            self.value = str(float(value))
        elif self.data_type == 'boolean':
            if isinstance(value, str):
                if value.lower() in ('true', '1', 'yes', 'on'):
                    self.value = 'true'
                elif value.lower() in ('false', '0', 'no', 'off'):
                    self.value = 'false'
                else:
                    raise ValueError(f"Cannot convert string '{value}' to boolean")
            else:
                self.value = 'true' if bool(value) else 'false'
        elif self.data_type == 'json':
            self.value = json.dumps(value)
        else:
            raise ValueError(f"Unknown data type: {self.data_type}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for database operations."""
        return {
            'key': self.key,
            'value': self.value,
            'data_type': self.data_type,
            'description': self.description,
            'category': self.category,
            'created_date': self.created_date.isoformat() if self.created_date else None,
            'last_updated': self.last_updated.isoformat() if self.last_updated else None
        }


# Default configuration values
DEFAULT_CONFIG = {
    'line_y_tolerance': Configuration(
        key='line_y_tolerance',
        value='5',
        data_type='number',
        description='Maximum vertical distance between a token and a line anchor',
        category='parsing'
    ),
    'header_band_margin': Configuration(
        key='header_band_margin',
        value='40',
        data_type='number',
        description='Extension of the outermost column bands beyond their header keyword',
        category='parsing'
    ),
    'row_band_epsilon': Configuration(
        key='row_band_epsilon',
        value='2',
        data_type='number',
        description='Slack added above and below each positional row band',
        category='parsing'
    ),
    'wrap_tolerance': Configuration(
        key='wrap_tolerance',
        value='14',
        data_type='number',
        description='Vertical reach for merging wrapped cell text into the row above',
        category='parsing'
    ),
    'row_edge_extension': Configuration(
        key='row_edge_extension',
        value='10',
        data_type='number',
        description='Synthetic band height above the first and below the last data row',
        category='parsing'
    ),
    'proximity_window_words': Configuration(
        key='proximity_window_words',
        value='8',
        data_type='number',
        description='Words on each side of an identifier searched for a nearby quantity',
        category='parsing'
    ),
    'max_workers': Configuration(
        key='max_workers',
        value='0',
        data_type='number',
        description='Worker threads used to parse pages (0 = one per CPU core)',
        category='parsing'
    ),
    'default_platform': Configuration(
        key='default_platform',
        value='myntra',
        data_type='string',
        description='Marketplace assumed when no platform is given',
        category='general'
    ),
    'database_version': Configuration(
        key='database_version',
        value='1.0',
        data_type='string',
        description='Current database schema version',
        category='system'
    )
}
