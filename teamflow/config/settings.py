# teamflow/config/settings.py
"""
Application settings loaded from environment variables
"""

import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Environment-driven configuration for the TeamFlow backend"""

    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///./teamflow.db')
    DATABASE_SSLMODE = os.getenv('DATABASE_SSLMODE', 'require')

    # Authentication settings
    AUTH = {
        'secret_key': os.getenv('SECRET_KEY', 'change-me'),
        'algorithm': os.getenv('ALGORITHM', 'HS256'),
        'access_token_expire_minutes': int(os.getenv('ACCESS_TOKEN_EXPIRE_MINUTES', 60 * 24)),
    }

    # Scheduler settings
    SCHEDULER = {
        'enabled': os.getenv('SCHEDULER_ENABLED', 'true').lower() == 'true',
        'overdue_interval_minutes': int(os.getenv('OVERDUE_INTERVAL_MINUTES', 60)),
        'deadline_interval_minutes': int(os.getenv('DEADLINE_INTERVAL_MINUTES', 30)),
        'deadline_window_hours': int(os.getenv('DEADLINE_WINDOW_HOURS', 2)),
        'deadline_dedupe_minutes': int(os.getenv('DEADLINE_DEDUPE_MINUTES', 60)),
        'daily_report_hour': int(os.getenv('DAILY_REPORT_HOUR', 17)),
        'cleanup_hour': int(os.getenv('CLEANUP_HOUR', 0)),
    }

    # Notification settings
    NOTIFICATIONS = {
        'retention_days': int(os.getenv('NOTIFICATION_RETENTION_DAYS', 30)),
    }

    # Client board settings
    BOARD = {
        'api_url': os.getenv('TEAMFLOW_API_URL', 'http://localhost:8000'),
        'refresh_seconds': int(os.getenv('BOARD_REFRESH_SECONDS', 60)),
        'request_timeout': float(os.getenv('BOARD_REQUEST_TIMEOUT', 10)),
    }

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    @classmethod
    def get_cors_origins(cls) -> List[str]:
        """Get allowed CORS origins"""
        raw = os.getenv('CORS_ORIGINS')
        if raw:
            return [origin.strip() for origin in raw.split(',') if origin.strip()]
        return [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
        ]

    @classmethod
    def is_sqlite(cls) -> bool:
        return cls.DATABASE_URL.lower().startswith('sqlite')


settings = Settings()
