"""
HTTP API for the users service.
"""
