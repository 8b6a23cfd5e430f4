"""
Core service layer: configuration, errors, data access and observability.
"""
