"""
Centralized configuration — env vars, pipeline constants, agent config defaults.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── OpenAI ────────────────────────────────────────────────────────────────────
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')

# ── Anthropic ─────────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY')
ANTHROPIC_MODEL = os.getenv('ANTHROPIC_MODEL', 'claude-3-5-sonnet-20241022')

# ── Resend (outbound email) ──────────────────────────────────────────────────
RESEND_API_KEY = os.getenv('RESEND_API_KEY')
RESEND_FROM_EMAIL = os.getenv('RESEND_FROM_EMAIL', 'outreach@example.com')
RESEND_API_URL = 'https://api.resend.com'

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Task queue ────────────────────────────────────────────────────────────────
TASK_BATCH_SIZE = int(os.getenv('TASK_BATCH_SIZE', 10))
MAX_TASK_ATTEMPTS = 3
TASK_RETENTION_DAYS = 30
# a processing row older than this is treated as abandoned by a crashed dispatcher
STALE_TASK_MINUTES = int(os.getenv('STALE_TASK_MINUTES', 30))
NOTIFICATION_RETENTION_DAYS = 30

# ── Scheduler ────────────────────────────────────────────────────────────────
TASK_TICK_MINUTES = 1
FOLLOW_UP_SCAN_MINUTES = 5
CLEANUP_HOUR = 3
OUT_OF_OFFICE_DELAY_DAYS = 5
DEFAULT_FOLLOW_UP_GAP_DAYS = 7

# ── Pipeline stage definitions ────────────────────────────────────────────────
PIPELINE_STAGES = [
    'new',
    'contacted',
    'responded',
    'meeting_scheduled',
    'proposal_sent',
    'won',
    'lost',
]

# ── Task status values ────────────────────────────────────────────────────────
TASK_STATUSES = [
    'pending',
    'processing',
    'completed',
    'failed',
]

# ── Agent types ───────────────────────────────────────────────────────────────
AGENT_TYPES = [
    'outreach',
    'followup',
    'response_classifier',
    'stage_manager',
]

# ── Reply classifications ─────────────────────────────────────────────────────
CLASSIFICATIONS = [
    'INTERESTED',
    'NOT_INTERESTED',
    'QUESTION',
    'MEETING_REQUEST',
    'OUT_OF_OFFICE',
    'UNCLEAR',
]

LLM_PROVIDERS = ['openai', 'anthropic']

# ── Agent config defaults (agent_config table) ────────────────────────────────
DEFAULT_AGENT_CONFIG = {
    'llm_provider': 'openai',
    'follow_up_days': '3,7,14',
    'max_follow_ups': '3',
    'auto_outreach': 'true',
    'auto_classify': 'true',
}
