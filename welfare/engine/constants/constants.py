# Internal
from datetime import timedelta

LONG_DATE_FORMAT = "%A, %B %d, %Y"

# Operating timezone (West Africa Time)
DEFAULT_UTC_OFFSET_HOURS = 1
DEFAULT_DAILY_TIME = "08:00"

# Tables
MEMBERS_TABLE = "members"
ADMINS_TABLE = "admins"
SPECIAL_DATES_TABLE = "special_dates"
REMINDER_LOGS_TABLE = "reminder_logs"

# Admin permissions
VIEW_MEMBERS_PERMISSION = "view_members"

# Special dates
DEFAULT_REMINDER_HOURS = 24
MIN_REMINDER_HOURS = 1
MAX_REMINDER_HOURS = 168
MAX_LABEL_LENGTH = 100
MAX_NOTES_LENGTH = 500
DEFAULT_UPCOMING_DAYS = 30

# Delivery
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = timedelta(hours=1)
DEFAULT_SEND_DELAY_SECONDS = 1.0
DEFAULT_SEND_TIMEOUT_SECONDS = 10.0
EMAIL_TEMPLATE_NAME = "celebration_reminder"

RESEND_API_ROUTE = "https://api.resend.com"
