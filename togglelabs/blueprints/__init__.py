"""
Togglelabs
Blueprint registry.
"""
