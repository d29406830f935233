### app/worker/app.py

"""
Main Celery Application Configuration

This file sets up the Celery application instance with Redis as broker and result backend.
Detached work (API log persistence, ERP mirroring) runs here so that the
request path never waits on it.
"""

# Third party imports
from celery import Celery

# Create Celery Instance
app = Celery("esign_bridge")

# Configure celery from separate config file
app.config_from_object("app.worker.config")

# Auto discover tasks from different modules
# This will look for tasks.py files in specified modules/packages
app.autodiscover_tasks([
    "app.api_logs",
    "app.erp",
])

if __name__ == "__main__":
    app.start()
