"""
Configuration settings for the Matchday Event Ledger
"""

import os

# Match Clock
MATCH_DURATION_MINUTES = 90
HALF_TIME_MINUTE = 45
INJURY_TIME_DEFAULT = 5  # Stoppage allowance on top of the match duration
MIN_EVENT_MINUTE = 0
MAX_EVENT_MINUTE = 150  # Room for stoppage time and extra time

# Opposition Detection
# The operator picks one of these in the "player" dropdown instead of a name
OPPOSITION_GOAL_MARKERS = ['Goal', 'Opposition']
OPPOSITION_CARD_MARKERS = ['Opposition']

# Discipline
# False: every red for one of our players is escalated to a second yellow
# (flagged orphaned when no earlier yellow is on record).
# True: a red without an earlier yellow stays a straight red.
STRAIGHT_RED_CARDS = False

# Duplicate Prevention
IDEMPOTENCY_TTL_HOURS = 24
IDEMPOTENCY_DB_FILE = "idempotency_keys.json"
EVENT_LEDGER_FILE = "match_events.jsonl"

# Make.com Webhook
MAKE_WEBHOOK_URL = os.environ.get("MAKE_WEBHOOK_URL", "")
REQUEST_TIMEOUT = 10  # seconds

# Logging
LOG_LEVEL = os.environ.get("MATCHDAY_LOG_LEVEL", "INFO")  # Console only; files always get DEBUG
LOG_FILE = "matchday.log"
LOG_MAX_BYTES = 10 * 1024 * 1024
LOG_BACKUP_COUNT = 5
ERROR_LOG_FILE = "errors.log"
ERROR_LOG_MAX_BYTES = 5 * 1024 * 1024
ERROR_LOG_BACKUP_COUNT = 3
DISPATCH_ALERT_THRESHOLD = 3  # Escalate after 3 identical dispatch failures
DISPATCH_ALERT_COOLDOWN = 3600  # seconds
