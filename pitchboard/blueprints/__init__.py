"""
Pitchboard
Blueprint registry.
"""
