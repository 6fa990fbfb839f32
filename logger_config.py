"""
Logging Configuration for Matchday Operation
Console plus rotating file logs, and monitoring of failed notifications
"""

import logging
import logging.handlers
import os
from datetime import datetime
from typing import Dict, Optional
import config


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _rotating_handler(path: str, level: int, max_bytes: int, backups: int,
                      formatter: logging.Formatter) -> logging.Handler:
    directory = os.path.dirname(path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory)
    handler = logging.handlers.RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_file: str = config.LOG_FILE, error_log_file: str = config.ERROR_LOG_FILE,
                  console_level: str = config.LOG_LEVEL):
    """
    Configure the root logger for a matchday session

    Console output at console_level, everything from DEBUG up in log_file,
    errors only in error_log_file. Both files rotate.
    """
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG)

    # Replace handlers from any earlier session in this process
    logger.handlers = []

    formatter = logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, console_level.upper(), logging.INFO))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    logger.addHandler(_rotating_handler(log_file, logging.DEBUG, config.LOG_MAX_BYTES,
                                        config.LOG_BACKUP_COUNT, formatter))
    logger.addHandler(_rotating_handler(error_log_file, logging.ERROR, config.ERROR_LOG_MAX_BYTES,
                                        config.ERROR_LOG_BACKUP_COUNT, formatter))

    logger.info(f"Matchday logging started {datetime.now().isoformat()} -> {log_file}, errors -> {error_log_file}")
    return logger


class DispatchMonitor:
    """
    Track failed notification dispatches
    Repeated identical failures are escalated to CRITICAL once per cooldown
    """

    def __init__(self, threshold: int = config.DISPATCH_ALERT_THRESHOLD,
                 cooldown_seconds: int = config.DISPATCH_ALERT_COOLDOWN):
        self.failure_counts: Dict[str, int] = {}
        self.last_alert_time: Dict[str, datetime] = {}
        self.logger = logging.getLogger(__name__)
        self.alert_threshold = threshold
        self.alert_cooldown = cooldown_seconds

    def record_failure(self, match_id: str, event_type: str, error_detail: Optional[str],
                       now: Optional[datetime] = None) -> bool:
        """
        Log a failed dispatch and escalate if it keeps happening

        Args:
            match_id: Match the notification belonged to
            event_type: Notification event_type
            error_detail: Dispatcher error description

        Returns:
            True if this failure triggered an escalation
        """
        detail = error_detail or 'unknown error'
        self.logger.error(f"Dispatch failed for {event_type} ({match_id}): {detail}")

        failure_key = f"{event_type}:{detail}"
        self.failure_counts[failure_key] = self.failure_counts.get(failure_key, 0) + 1

        if self.failure_counts[failure_key] < self.alert_threshold:
            return False

        now = now or datetime.now()
        last_alert = self.last_alert_time.get(failure_key)
        if last_alert is not None and (now - last_alert).total_seconds() <= self.alert_cooldown:
            return False

        self.logger.critical(
            f"Notification dispatch failing repeatedly ({self.failure_counts[failure_key]}x): {failure_key}"
        )
        self.last_alert_time[failure_key] = now
        self.failure_counts[failure_key] = 0
        return True

    def record_success(self):
        """Successful dispatch - nothing to escalate"""
        self.logger.debug("Dispatch succeeded")

    def get_failure_summary(self) -> dict:
        """Get summary of recent dispatch failures"""
        return {
            'total_failure_types': len(self.failure_counts),
            'failure_counts': dict(self.failure_counts),
            'recent_alerts': len(self.last_alert_time)
        }
