"""
Shell Package

Command line entry point of fasttrace.
"""
