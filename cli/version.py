"""
Version information for the Marketplace Order Intake System.
"""

import sys
from importlib import metadata
from typing import Dict


# Base version - this is the only place you need to update the version number
BASE_VERSION = "1.0.0"


def get_version() -> str:
    return BASE_VERSION


def _package_version(name: str) -> str:
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return 'not installed'


def get_version_info() -> Dict[str, str]:
    """
    Get version details for the status command.

    Returns:
        Dictionary with the application, interpreter and key library versions
    """
    return {
        'version': BASE_VERSION,
        'python_version': sys.version.split()[0],
        'pdfplumber_version': _package_version('pdfplumber'),
        'click_version': _package_version('click')
    }
