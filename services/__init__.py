"""
Task platform microservices
"""
