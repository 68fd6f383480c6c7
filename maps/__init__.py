"""
Maps — registry of supported deep-zoom maps

Provides:
- BUILTIN_MAPS / BRIGHT_STARS: static map knowledge and the bright-star list
- MapRegistry: describe(), list_maps(), points_near(), YAML overrides
- locate: small CLI resolving objects to viewer coordinates

Usage:
    from maps.registry import MapRegistry
    reg = MapRegistry.default()
    mars = reg.describe("mars")
"""
