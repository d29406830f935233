### app/worker/config.py

"""
Celery configuration settings

This file contains all the Celery configurations including:
- Broker and result backend settings
- Task serialization settings
- Timezone configuration
"""

# Local imports
from app.core.config import settings

# Broker and result backend configurations
broker_url = settings.celery_broker
result_backend = settings.celery_backend

# Task serialization
task_serializer = "json"
accept_content = ["json"]
result_serializer = "json"
timezone = "UTC"
enable_utc = True

# Task settings
task_track_started = True
task_time_limit = 5 * 60 # 5 minutes
task_soft_time_limit = 4 * 60 # 4 minutes
worker_prefetch_multiplier = 1
task_acks_late = True
worker_disable_rate_limits = False

# Results of fire-and-forget tasks are not read back
task_ignore_result = True

# Worker configuration
worker_hijack_root_logger = False
worker_log_color = False
