from .measurements import MeasurementSink, Measurements

__all__ = ["MeasurementSink", "Measurements"]
