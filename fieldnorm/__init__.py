"""
Agricultural Field Data Normalizer

Normalizes heterogeneous field-data exports (binary GPS logs, delimited sprayer
logs, zipped shapefiles) into scaled time-log channels, metadata triples and
WGS84 geometry.
"""

__version__ = "1.0.0"
