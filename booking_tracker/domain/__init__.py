"""
Domain layer

Each subpackage owns one concern of the booking lifecycle:
- progress: weighted milestone/task aggregation and write-back
- status: display status derivation
- deadlines: overdue detection, completion estimates and risks
- summary: dashboard summary with fast and fallback paths
- insights: ranked dashboard suggestions
"""
