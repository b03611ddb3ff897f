import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./puppyday.db")

# Local development switch - enables manual job triggers and relaxes webhook checks
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

# Shared bearer tokens
ADMIN_API_TOKEN = os.getenv("ADMIN_API_TOKEN")
CRON_SECRET = os.getenv("CRON_SECRET")

# Public site URL used in links inside notifications
SITE_URL = os.getenv("SITE_URL", "https://thepuppyday.com")

# Twilio Configuration
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER", "+16572522903")

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Puppy Day <noreply@thepuppyday.com>")

# Notification retry schedule (seconds)
NOTIFICATION_MAX_RETRIES = int(os.getenv("NOTIFICATION_MAX_RETRIES", "2"))
NOTIFICATION_RETRY_BASE_DELAY = int(os.getenv("NOTIFICATION_RETRY_BASE_DELAY", "30"))
NOTIFICATION_RETRY_MAX_DELAY = int(os.getenv("NOTIFICATION_RETRY_MAX_DELAY", "300"))
NOTIFICATION_RETRY_JITTER = float(os.getenv("NOTIFICATION_RETRY_JITTER", "0.3"))

# Redis (rate limiting + arq worker)
REDIS_URL = os.getenv("REDIS_URL")
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Business details exposed to notification templates as {{business.*}}
BUSINESS_CONTEXT = {
    "name": os.getenv("BUSINESS_NAME", "Puppy Day"),
    "address": os.getenv("BUSINESS_ADDRESS", "14936 Leffingwell Rd, La Mirada, CA 90638"),
    "phone": os.getenv("BUSINESS_PHONE", "(657) 252-2903"),
    "email": os.getenv("BUSINESS_EMAIL", "puppyday14936@gmail.com"),
    "hours": os.getenv("BUSINESS_HOURS_TEXT", "Monday-Saturday, 9:00 AM - 5:00 PM"),
    "website": SITE_URL,
}

# CORS
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS",
    "https://thepuppyday.com,https://www.thepuppyday.com,http://localhost:3000",
).split(",")
