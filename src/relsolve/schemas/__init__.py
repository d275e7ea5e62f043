"""Schemas declared in Python with the ``rule`` decorator."""

from .invoice_item import INVOICE_ITEM

PYTHON_SCHEMAS = {
    INVOICE_ITEM.name: INVOICE_ITEM,
}

__all__ = ["INVOICE_ITEM", "PYTHON_SCHEMAS"]
