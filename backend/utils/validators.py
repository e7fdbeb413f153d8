"""
Input validation utilities for the Storefront Order Service.

Provides reusable validators for order ids and other path inputs.
"""
import uuid

from fastapi import HTTPException, Path


def validate_uuid(value: str, label: str = "id") -> str:
    """
    Validate a UUID string (order, variant or profile id).

    Returns:
        The canonical lowercase form

    Raises:
        HTTPException(400) if the value is not a UUID
    """
    if not value:
        raise HTTPException(status_code=400, detail=f"{label} is required")

    try:
        return str(uuid.UUID(value))
    except (ValueError, AttributeError, TypeError):
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {label}: expected a UUID, got '{str(value)[:40]}'",
        )


def validated_order_id(order_id: str = Path(..., description="Order UUID")) -> str:
    """FastAPI dependency for validating order id path parameters."""
    return validate_uuid(order_id, "order id")


def validated_variant_id(variant_id: str = Path(..., description="Product variant UUID")) -> str:
    """FastAPI dependency for validating variant id path parameters."""
    return validate_uuid(variant_id, "variant id")
