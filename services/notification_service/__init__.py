"""
Notification Service
Consumes task_created events and stores the resulting notifications
"""
