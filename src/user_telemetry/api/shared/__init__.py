"""
Shared API components: error model, exceptions, middleware, routers.
"""
