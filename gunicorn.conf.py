# Gunicorn configuration for the live work board

# App factory; the poller starts inside the worker
wsgi_app = "app:create_app()"

# Manual refreshes wait on ClickUp for every team member
timeout = 120

# The status cache and poller live in process memory, so one worker only.
# Threads keep /api/status responsive while a manual refresh is running.
workers = 1
threads = 4

# Bind to PORT from environment
import os
bind = f"0.0.0.0:{os.environ.get('PORT', '5173')}"

# Logging
accesslog = "-"
errorlog = "-"
loglevel = "info"
