"""
Shared routers.
"""
