"""
Sportsblock API Module

FastAPI application factory, dependencies, middleware and routes.
"""
