"""
API Gateway
Single entry point: routes /api/* to the backend services and aggregates
their health
"""
