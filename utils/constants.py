"""
Application-wide constants.
Centralizes magic numbers and configuration values.
"""

# Agent used when a request does not name one (single-agent brokerage)
DEFAULT_AGENT_ID = "00000000-0000-0000-0000-000000000001"

# Appointment defaults
APPOINTMENT_DURATION_MINUTES = 45
AVAILABILITY_NOTES = "Horario generado automáticamente"

# Validation limits
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 100
MAX_EMAIL_LENGTH = 255
MAX_PHONE_LENGTH = 20
MAX_NOTES_LENGTH = 1000
MAX_COMPANY_LENGTH = 100
MAX_WORKER_NUMBER_LENGTH = 20

# CRM listing
APPOINTMENTS_PAGE_LIMIT = 100
MAX_APPOINTMENTS_PAGE_LIMIT = 500

# Slot generation defaults
GENERATION_DAYS = 7
GENERATION_START_HOUR = 9
GENERATION_END_HOUR = 16
GENERATION_LUNCH_HOUR = 12
