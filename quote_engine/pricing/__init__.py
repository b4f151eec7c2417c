"""Pricing calculator, line items and the pricing config store."""
