"""
Task Manager service: projects, tasks, users and analytics.
"""
