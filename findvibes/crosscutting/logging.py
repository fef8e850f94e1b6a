import json
import logging
import re
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from contextvars import ContextVar

# Context variables for correlation
run_id_var: ContextVar[Optional[str]] = ContextVar('run_id', default=None)
playlist_id_var: ContextVar[Optional[str]] = ContextVar('playlist_id', default=None)
stage_var: ContextVar[Optional[str]] = ContextVar('stage', default=None)


class SecretMasker:
    """Masks sensitive information in log messages."""

    def __init__(self):
        """Initialize secret masker with patterns."""
        self.patterns = [
            # Spotify access tokens
            r'(?i)(spotify_access_token|access_token|refresh_token)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            # Client secrets
            r'(?i)(client_secret)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{20,})["\']?',
            # Bearer headers
            r'(?i)(bearer)[\s]+([a-zA-Z0-9\-_\.]{20,})',
            # Generic tokens and keys
            r'(?i)(token|key|secret|password)[\s]*[:=][\s]*["\']?([a-zA-Z0-9\-_\.]{10,})["\']?',
        ]

        self.compiled_patterns = [re.compile(pattern) for pattern in self.patterns]

    @staticmethod
    def _mask(secret: str) -> str:
        # Keep first 4 and last 4 characters, mask the rest
        if len(secret) > 8:
            return secret[:4] + '*' * (len(secret) - 8) + secret[-4:]
        return '*' * len(secret)

    def mask_secrets(self, text: str) -> str:
        """Mask sensitive information in text."""
        if not text:
            return text

        def replace_match(match):
            prefix = match.group(1)
            separator = ' ' if prefix.lower() == 'bearer' else ': '
            return f"{prefix}{separator}{self._mask(match.group(2))}"

        masked_text = text
        for pattern in self.compiled_patterns:
            masked_text = pattern.sub(replace_match, masked_text)
        return masked_text

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive information in dictionary values."""
        if not data:
            return data

        masked_data = {}
        for key, value in data.items():
            if isinstance(value, str):
                masked_data[key] = self.mask_secrets(value)
            elif isinstance(value, dict):
                masked_data[key] = self.mask_dict(value)
            elif isinstance(value, list):
                masked_data[key] = [self.mask_dict(item) if isinstance(item, dict)
                                    else self.mask_secrets(item) if isinstance(item, str)
                                    else item for item in value]
            else:
                masked_data[key] = value
        return masked_data


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self):
        """Initialize formatter."""
        super().__init__()
        self.masker = SecretMasker()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': self.masker.mask_secrets(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        run_id = run_id_var.get()
        playlist_id = playlist_id_var.get()
        stage = stage_var.get()
        if run_id:
            log_entry['runId'] = run_id
        if playlist_id:
            log_entry['playlistId'] = playlist_id
        if stage:
            log_entry['stage'] = stage

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        if getattr(record, 'fields', None):
            log_entry['fields'] = self.masker.mask_dict(record.fields)

        return json.dumps(log_entry, ensure_ascii=False)


class CorrelationContext:
    """Context manager for correlation data."""

    def __init__(self, run_id: Optional[str] = None,
                 playlist_id: Optional[str] = None,
                 stage: Optional[str] = None):
        """Initialize correlation context."""
        self._values = {
            run_id_var: run_id,
            playlist_id_var: playlist_id,
            stage_var: stage,
        }
        self._tokens = []

    def __enter__(self):
        """Set correlation context."""
        for var, value in self._values.items():
            if value is not None:
                self._tokens.append((var, var.set(value)))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Restore correlation context."""
        while self._tokens:
            var, token = self._tokens.pop()
            var.reset(token)


def setup_logging(level: str = 'INFO',
                  log_file: Optional[str] = None,
                  run_id: Optional[str] = None,
                  structured: bool = True) -> logging.Logger:
    """Configure the ``findvibes`` logger hierarchy."""
    logger = logging.getLogger('findvibes')
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()

    if structured:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if run_id:
        run_id_var.set(run_id)

    return logger


def log_with_fields(logger: logging.Logger, level: str, message: str,
                    fields: Optional[Dict[str, Any]] = None, exc_info: bool = False, **kwargs):
    """Log message with additional fields."""
    merged = dict(fields or {})
    merged.update(kwargs)
    logger.log(getattr(logging, level.upper()), message, exc_info=exc_info,
               extra={'fields': merged} if merged else None)


def log_run_start(logger: logging.Logger, run_id: str, method: str,
                  use_top_tracks: int, play_list_length: int, **kwargs):
    """Log recommendation run start."""
    with CorrelationContext(run_id=run_id, stage='start'):
        log_with_fields(logger, 'INFO', 'Recommendation run started', {
            'method': method,
            'use_top_tracks': use_top_tracks,
            'play_list_length': play_list_length,
            **kwargs
        })


def log_run_complete(logger: logging.Logger, run_id: str, playlist_id: str,
                     track_count: int, enrichment_errors: int, **kwargs):
    """Log recommendation run completion."""
    with CorrelationContext(run_id=run_id, playlist_id=playlist_id, stage='complete'):
        log_with_fields(logger, 'INFO', 'Recommendation run completed', {
            'track_count': track_count,
            'enrichment_errors': enrichment_errors,
            **kwargs
        })


def log_error(logger: logging.Logger, message: str, error: Exception, **kwargs):
    """Log error with exception details."""
    log_with_fields(logger, 'ERROR', message, {
        'error_type': type(error).__name__,
        'error_message': str(error),
        **kwargs
    })
