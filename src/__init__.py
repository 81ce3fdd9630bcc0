#!/usr/bin/env -S python3 -B -u
"""
fasttrace - Carrier Route Tester Package

Traces routes to well-known vantage points of the major Chinese carriers.
"""

__version__ = '1.0.0'
__author__ = 'Network Analysis Tool'
__license__ = 'MIT'

# Package metadata
__all__ = [
    'core',
    'executors',
    'geo',
    'renderers',
    'shell',
]
