"""
Service layer for media synchronization.

Reusable building blocks for classifying, fetching, normalizing and storing
external media, kept free of registry bookkeeping. These are used by:
- The huey background task (mirror/tasks.py via mirror/orchestrator.py)
- Render-time decisions (mirror/render.py)
- Management commands (mirror/management/commands/)
"""
