"""Biometric Monitor — streaming stress and arousal analytics for a wearable GSR / heart-rate sensor."""

__version__ = "0.1.0"
