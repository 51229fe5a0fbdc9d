"""
Logging setup shared by the web process (create_app) and the clock process.

Agent dispatch logs carry task context through ``extra=``:

    logger.info("Task %s completed", task_id,
                extra={'task_id': task_id, 'agent_type': 'followup', 'prospect_id': 12})

JSON output promotes those keys to top-level fields so a log search can follow
one task or prospect across retries. Text output appends them as
``[task=… agent=… prospect=…]``.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone

# record attribute → short label used in text output
TASK_CONTEXT_FIELDS = {
    'task_id': 'task',
    'agent_type': 'agent',
    'prospect_id': 'prospect',
}

# Client libraries plus APScheduler's per-run "Running job" lines
QUIET_LOGGERS = [
    'urllib3',
    'openai',
    'anthropic',
    'httpcore',
    'httpx',
    'apscheduler',
]


def task_context(record):
    """Task context fields present on a log record, in TASK_CONTEXT_FIELDS order."""
    return {key: getattr(record, key) for key in TASK_CONTEXT_FIELDS
            if getattr(record, key, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with task context as top-level keys."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        entry.update(task_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TaskTextFormatter(logging.Formatter):
    """Plain-text lines with a trailing [task=… agent=… prospect=…] tag."""

    def format(self, record):
        line = super().format(record)
        context = task_context(record)
        if not context:
            return line
        tag = ' '.join(f'{TASK_CONTEXT_FIELDS[k]}={v}' for k, v in context.items())
        first, newline, rest = line.partition('\n')
        return f'{first} [{tag}]{newline}{rest}'


def configure_logging(app=None):
    """
    Replace the root logger's handlers with one stderr handler.

    LOG_LEVEL picks the level (unknown names fall back to INFO) and
    LOG_FORMAT=json switches to JSONFormatter. Safe to call more than once.
    """
    level = getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)
    json_output = os.getenv('LOG_FORMAT', 'text').lower() == 'json'

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TaskTextFormatter(
            '[%(asctime)s] %(levelname)s %(name)s: %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
        ))
    root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.setLevel(level)
