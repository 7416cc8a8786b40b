"""
Services module - Database container and optional companion containers
"""
