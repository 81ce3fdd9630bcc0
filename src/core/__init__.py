"""
Core Package

Data models, target catalog, configuration and session sequencing.
"""
