"""
Notifications module: outbox table, email templates and dispatchers (log, SMTP).
"""
