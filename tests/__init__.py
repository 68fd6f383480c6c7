"""
Stellar Resolution Test Suite

This package contains tests for the viewport/overlay core of the deep-zoom map explorer.

Structure:
- unit/: Unit tests for individual components
- integration/: Integration tests for the catalogue service and session wiring
"""
