"""
Configuration Manager Module
============================

Responsibility:
- Centralized loading and validation of JSON configuration files.
- Enforcement of schema constraints and physical consistency rules.
- Default hydration and deterministic seed propagation for reproducibility.
"""

from .config_manager import ConfigurationManager, merge_with_defaults

__all__ = ['ConfigurationManager', 'merge_with_defaults']
