# ============================================================================
# src/medication_capture/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings
"""

from .registry_config import registry_settings, RegistrySettings
from .thresholds_config import threshold_settings, ThresholdSettings
from .logging_config import logging_settings, LoggingSettings
