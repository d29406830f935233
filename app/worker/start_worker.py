### app/worker/start_worker.py

"""
Celery worker startup script

This script starts the celery worker with appropriate configuration.
Worker processes API log and ERP mirroring tasks.
"""

# Local imports
from app.core.config import settings
from app.worker.app import app

def start_worker():
    """Start the celery worker."""

    # Worker configuration
    argv = [
        "worker",
        "--loglevel=info", # Loglevel (debug, info, warning, error, critical)
        "--concurrency=2", # Number of concurrent workers
        "--max-tasks-per-child=200", # Number of tasks a worker can process before restarting
        "--prefetch-multiplier=1", # Prefetch multiplier for the worker
    ]

    print("Starting Celery worker ...")
    print(f"Broker URL: {settings.celery_broker}")
    print("Available task modules:")
    for module in ["app.api_logs", "app.erp"]:
        print(f"- {module}.tasks")

    # Start the worker
    app.worker_main(argv)

if __name__ == "__main__":
    start_worker()
