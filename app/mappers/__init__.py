"""
app/mappers package marker.
"""

from app.mappers.column_role_mapper import (
    ColumnMapping,
    ColumnRoleMapper,
    HeaderDetection,
    detect_header,
    infer_column_roles,
)
from app.mappers.line_item_mapper import (
    apply_analysis,
    match_result_to_record,
    record_to_dict,
    record_to_match_result,
)

__all__ = [
    "ColumnMapping",
    "ColumnRoleMapper",
    "HeaderDetection",
    "apply_analysis",
    "detect_header",
    "infer_column_roles",
    "match_result_to_record",
    "record_to_dict",
    "record_to_match_result",
]
