"""
Task Service
Task creation; publishes task_created events for the notification service
"""
