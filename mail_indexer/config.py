"""
Centralized configuration management for the mail indexer
All configurable values consolidated in one place, overridable from the environment
"""

import os
from typing import Dict, Any, List


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == 'true'


class MailIndexerConfig:
    """Configuration management for the mail indexer with environment variable override support"""

    def __init__(self):
        # Attachment store
        self.ATTACH_DIR = os.getenv('MI_ATTACH_DIR', 'files')

        # Search index
        self.SEARCH_URL = os.getenv('MI_SEARCH_URL', 'http://127.0.0.1:9200')
        self.INDEX = os.getenv('MI_INDEX', 'mail')
        self.VERIFY_CERTS = _env_bool('MI_VERIFY_CERTS', 'true')
        self.BULK_ACTIONS = int(os.getenv('MI_BULK_ACTIONS', 500))

        # Worker pool
        self.WORKERS = int(os.getenv('MI_WORKERS', os.cpu_count() or 1))
        self.QUEUE_SIZE_PER_WORKER = int(os.getenv('MI_QUEUE_SIZE_PER_WORKER', 2))
        self.SHUTDOWN_TIMEOUT = float(os.getenv('MI_SHUTDOWN_TIMEOUT', 30.0))

        # Content decoding
        self.DETECT_MIN_CONFIDENCE = float(os.getenv('MI_DETECT_MIN_CONFIDENCE', 0.5))
        self.DEFAULT_CHARSET = os.getenv('MI_DEFAULT_CHARSET', 'utf-8')
        self.CHARSET_ERRORS = os.getenv('MI_CHARSET_ERRORS', 'replace')

        # Logging
        self.DEFAULT_LOG_LEVEL = os.getenv('MI_LOG_LEVEL', 'INFO')
        self.VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

        # Address-bearing headers split into one value per entry
        self.ADDRESS_HEADERS: List[str] = [
            'From', 'To', 'Cc', 'Bcc', 'Return-Path', 'Delivered-To'
        ]

    def get_config_dict(self) -> Dict[str, Any]:
        """Get all configuration values as a dictionary"""
        return {
            'attach_dir': self.ATTACH_DIR,
            'search_url': self.SEARCH_URL,
            'index': self.INDEX,
            'verify_certs': self.VERIFY_CERTS,
            'bulk_actions': self.BULK_ACTIONS,
            'workers': self.WORKERS,
            'queue_size_per_worker': self.QUEUE_SIZE_PER_WORKER,
            'shutdown_timeout': self.SHUTDOWN_TIMEOUT,
            'detect_min_confidence': self.DETECT_MIN_CONFIDENCE,
            'default_charset': self.DEFAULT_CHARSET,
            'charset_errors': self.CHARSET_ERRORS,
            'default_log_level': self.DEFAULT_LOG_LEVEL,
            'valid_log_levels': self.VALID_LOG_LEVELS,
            'address_headers': self.ADDRESS_HEADERS,
        }

# Create a singleton instance
config = MailIndexerConfig()
