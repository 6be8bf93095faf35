"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_AUTO_LOCK_HOURS = 24
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 200
RECENT_UPDATES_IN_SUMMARY = 10

MAX_REMARKS_LENGTH = 500
MAX_TRAINER_REMARKS_LENGTH = 2000
MAX_ISSUES_LENGTH = 1000
MAX_DAILY_SUMMARY_LENGTH = 5000

DEFAULT_FEEDBACK_RATING = 5
