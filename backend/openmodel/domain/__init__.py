"""
Domain layer: enums, type mapping and schemas.
"""
