"""
app/domain package marker.
"""

from app.domain.quality import DataRequirementsReport, ExtractionQuality, MatchingQuality, QualityGrade

__all__ = [
    "DataRequirementsReport",
    "ExtractionQuality",
    "MatchingQuality",
    "QualityGrade",
]
