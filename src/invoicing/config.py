"""
Configuration management for invoice authoring.

Loads INVOICE_* settings from environment variables.
"""

import os
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

# Load .env file from project root (idempotent if already loaded by retainer_settlements)
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / '.env'
if _env_file.exists():
    load_dotenv(_env_file)


class InvoiceConfig:
    """Configuration for invoice numbering and totals, loaded from environment."""

    # Numbering: <prefix>-<year>-<zero padded sequence>
    NUMBER_PREFIX: str = os.getenv('INVOICE_NUMBER_PREFIX', 'INV')
    SEQUENCE_WIDTH: int = int(os.getenv('INVOICE_SEQUENCE_WIDTH', '4'))

    # Tax rate applied when a form does not carry one (fraction, 0.08 = 8%)
    DEFAULT_TAX_RATE: Decimal = Decimal(os.getenv('INVOICE_DEFAULT_TAX_RATE', '0'))

    @classmethod
    def validate(cls) -> list[str]:
        """
        Validate configuration values.

        Returns:
            List of invalid configuration keys.
        """
        invalid = []
        if not cls.NUMBER_PREFIX:
            invalid.append('INVOICE_NUMBER_PREFIX')
        if cls.SEQUENCE_WIDTH < 1:
            invalid.append('INVOICE_SEQUENCE_WIDTH')
        if not (Decimal('0') <= cls.DEFAULT_TAX_RATE <= Decimal('1')):
            invalid.append('INVOICE_DEFAULT_TAX_RATE')
        return invalid


# Singleton config instance
invoice_config = InvoiceConfig()
