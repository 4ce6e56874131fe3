"""
app/validators package marker.
"""

from app.validators.extraction_validator import (
    InsufficientDataError,
    check_minimum_data_requirements,
    validate_extraction,
    validate_matching,
    validate_minimum_data_requirements,
)

__all__ = [
    "InsufficientDataError",
    "check_minimum_data_requirements",
    "validate_extraction",
    "validate_matching",
    "validate_minimum_data_requirements",
]
