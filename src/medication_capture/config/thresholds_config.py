# ============================================================================
# src/medication_capture/config/thresholds_config.py
# ============================================================================
"""
Confidence Thresholds
- Confidence level bands (0-100 scale)
- Manual verification flag
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

class ThresholdSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    HIGH_CONFIDENCE_THRESHOLD: int = Field(
        default=75,
        ge=0, le=100,
        description="Scores at or above this are shown as high confidence"
    )
    MEDIUM_CONFIDENCE_THRESHOLD: int = Field(
        default=50,
        ge=0, le=100,
        description="Scores at or above this (and below high) are medium confidence"
    )
    REVIEW_THRESHOLD: int = Field(
        default=75,
        ge=0, le=100,
        description="Below this score a record is flagged 'needs manual verification'. Records are never dropped."
    )

    @model_validator(mode="after")
    def check_ordering(self):
        if self.MEDIUM_CONFIDENCE_THRESHOLD > self.HIGH_CONFIDENCE_THRESHOLD:
            raise ValueError(
                "MEDIUM_CONFIDENCE_THRESHOLD must not exceed HIGH_CONFIDENCE_THRESHOLD"
            )
        return self

threshold_settings = ThresholdSettings()
