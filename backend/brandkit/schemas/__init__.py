"""Schemas layer - Pydantic models for kit documents and API bodies.

brand_kit holds the stored document entities; kits holds request and
response bodies.
"""
