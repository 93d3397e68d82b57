"""
Test helper utilities for PneumaFlow testing.

Provides generators for synthetic CPAP samples and CSV exports.
"""
