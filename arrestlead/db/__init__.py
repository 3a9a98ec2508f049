"""
Persistence backends for Arrest Lead.
"""
