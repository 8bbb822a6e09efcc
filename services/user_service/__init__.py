"""
User Service
User registration and user-id validation for the other services
"""
