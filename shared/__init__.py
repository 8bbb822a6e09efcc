"""
Shared library for the task platform services
"""
