# CREATE FILE: utils/logging.py

import json
import os
import time
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextlib import contextmanager


class StructuredLogger:
    """
    Structured JSON logger shared by the pricing services.

    Every entry is a single JSON line on stdout carrying:
    - service, environment and version fields
    - error type/message when an exception is attached
    - timing for operations wrapped in operation_context
    """

    def __init__(self, service_name: str, environment: str = None):
        self.service_name = service_name
        self.environment = environment or os.getenv('ENVIRONMENT', 'development')
        self.version = os.getenv('SERVICE_VERSION', '1.0.0')
        self.enable_debug = os.getenv('DEBUG_LOGGING', 'false').lower() == 'true'

        self.base_fields = {
            'service': self.service_name,
            'environment': self.environment,
            'version': self.version,
            'process_id': os.getpid()
        }

    def _create_log_entry(self, level: str, message: str, **kwargs) -> Dict[str, Any]:
        """Create a structured log entry with standard fields"""
        entry = {
            'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': level.upper(),
            'message': message,
            **self.base_fields
        }

        for key, value in kwargs.items():
            if value is not None:
                entry[key] = value

        return entry

    def _log(self, level: str, message: str, **kwargs):
        log_entry = self._create_log_entry(level, message, **kwargs)
        print(json.dumps(log_entry, default=str))

    def debug(self, message: str, **kwargs):
        """Debug level logging (only if debug enabled)"""
        if self.enable_debug:
            self._log('debug', message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log('info', message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log('warning', message, **kwargs)

    def error(self, message: str, error: Exception = None, **kwargs):
        """Error level logging with optional exception details"""
        error_details = {}
        if error:
            error_details = {
                'error_type': type(error).__name__,
                'error_message': str(error),
                'stack_trace': traceback.format_exc() if self.enable_debug else None
            }

        self._log('error', message, **error_details, **kwargs)

    def configuration_event(self, event_type: str, version: str = None,
                            fee_id: str = None, **kwargs):
        """Log a change to the active fee configuration"""
        self.info(
            f"Configuration event: {event_type}",
            action='configuration_event',
            event_type=event_type,
            config_version=version,
            fee_id=fee_id,
            **kwargs
        )

    def pricing_event(self, event_type: str, subtotal: int = None,
                      total: int = None, currency: str = None, **kwargs):
        """Log a priced order (amounts in minor units)"""
        self.info(
            f"Pricing event: {event_type}",
            action='pricing_event',
            event_type=event_type,
            subtotal=subtotal,
            total=total,
            currency=currency,
            **kwargs
        )

    def _categorize_performance(self, duration_ms: float) -> str:
        if duration_ms < 1:
            return 'fast'
        elif duration_ms < 10:
            return 'normal'
        else:
            return 'slow'

    @contextmanager
    def operation_context(self, operation_name: str, request_id: Optional[str] = None):
        """Context manager for timed operations"""
        start_time = time.perf_counter()

        try:
            self.debug(f"Operation started: {operation_name}",
                       action='operation_start',
                       operation=operation_name,
                       request_id=request_id)
            yield
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.error(f"Operation failed: {operation_name}",
                       error=e,
                       action='operation_error',
                       operation=operation_name,
                       duration_ms=round(duration_ms, 3),
                       request_id=request_id)
            raise
        else:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.debug(f"Operation completed: {operation_name}",
                       action='operation_end',
                       operation=operation_name,
                       duration_ms=round(duration_ms, 3),
                       performance_category=self._categorize_performance(duration_ms),
                       request_id=request_id)


def get_logger(service_name: str) -> StructuredLogger:
    """Get a configured logger for a service"""
    return StructuredLogger(service_name)
