"""
Core infrastructure: configuration, logging, errors, metrics, database
"""
