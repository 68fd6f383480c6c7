"""
Common — shared types, coordinate transforms, logging and configuration

- types: MapDescriptor, NativeCoordinate variants, ViewportSnapshot, OverlayEntry, ...
- geo: forward/inverse transforms between native coordinates and the viewer unit square
- logging_setup: JSON log formatting (setup_logging / get_logger)
- config: YAML parameter loading with built-in defaults
"""
