"""
Executors Package

Probe engines and the probe run executor:
- Pluggable engine interface
- traceroute(8) backed engine with hop streaming
"""
