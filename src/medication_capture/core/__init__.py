# src/medication_capture/core/__init__.py
