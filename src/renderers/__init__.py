"""
Renderers Package

Realtime hop printer, hop table and route report.
"""
