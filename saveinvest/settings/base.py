import os
from pathlib import Path
from dotenv import load_dotenv
from celery.schedules import crontab

load_dotenv()  # Load .env file if present

BASE_DIR = Path(__file__).resolve().parents[2]
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-key")
DEBUG = os.getenv("DJANGO_DEBUG", "false").lower() in {"1", "true", "yes"}
raw_hosts = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1")
ALLOWED_HOSTS = [h.strip() for h in raw_hosts.split(",") if h.strip()]

# Account numbers are AES-256-CBC encrypted with a key derived from this secret
ACCOUNT_ENCRYPTION_KEY = os.getenv(
    "ACCOUNT_ENCRYPTION_KEY", "dev-insecure-account-encryption-key"
)
# HMAC key for lookup fingerprints of Aadhaar/account numbers
DATA_HASH_KEY = os.getenv("DATA_HASH_KEY", "dev-insecure-data-hash-key")

SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")

INSTALLED_APPS = [
    # Django Admin Deps
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    # Our apps and 3rd party
    "rest_framework",
    "saveinvest.apps.users.apps.UsersConfig",
    "saveinvest.apps.kyc.apps.KycConfig",
    "saveinvest.apps.onboarding.apps.OnboardingConfig",
    "saveinvest.apps.banking.apps.BankingConfig",
    "saveinvest.apps.savings.apps.SavingsAppConfig",
    "saveinvest.apps.investments.apps.InvestmentsConfig",
    "saveinvest.apps.analytics.apps.AnalyticsConfig",
    "saveinvest.apps.audit.apps.AuditConfig",
    "whitenoise.runserver_nostatic",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "saveinvest.urls"
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ]
        },
    }
]
WSGI_APPLICATION = "saveinvest.wsgi.application"

# Postgres by default; override with docker/dev settings as needed
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "HOST": os.getenv("DB_HOST", "localhost"),
        "PORT": os.getenv("DB_PORT", "5432"),
        "NAME": os.getenv("DB_NAME", "saveinvest_db"),
        "USER": os.getenv("DB_USER", "saveinvest_user"),
        "PASSWORD": os.getenv("DB_PASSWORD", "saveinvest_password"),
    }
}

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"
    },
}

DATABASE_URL = os.getenv("DATABASE_URL")
if DATABASE_URL:
    from urllib.parse import urlparse

    parsed = urlparse(DATABASE_URL)
    DATABASES["default"].update(
        {
            "NAME": parsed.path.lstrip("/"),
            "USER": parsed.username,
            "PASSWORD": parsed.password,
            "HOST": parsed.hostname,
            "PORT": parsed.port or "5432",
            "OPTIONS": {"sslmode": os.getenv("DB_SSLMODE", "require")},
        }
    )

LANGUAGE_CODE = "en-us"
TIME_ZONE = "Asia/Kolkata"
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "EXCEPTION_HANDLER": "saveinvest.errors.api_exception_handler",
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.AllowAny"],
    "UNAUTHENTICATED_USER": None,
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "saveinvest": {
            "handlers": ["console"],
            "level": os.getenv("LOG_LEVEL", "INFO"),
        },
    },
}

# Celery configuration
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_DEFAULT_QUEUE = os.getenv("CELERY_TASK_DEFAULT_QUEUE", "saveinvest")
CELERY_TASK_ACKS_LATE = True
CELERY_TASK_TIME_LIMIT = int(os.getenv("CELERY_TASK_TIME_LIMIT", "600"))
CELERY_TIMEZONE = TIME_ZONE

CELERY_BROKER_CONNECTION_RETRY_ON_STARTUP = True

CELERY_BEAT_SCHEDULE = {
    # Scheduled rules run on the 1st of every month
    "auto-invest-monthly": {
        "task": "saveinvest.apps.investments.tasks.run_scheduled_auto_invest",
        "schedule": crontab(minute=0, hour=0, day_of_month=1),
    },
    "nav-refresh-daily": {
        "task": "saveinvest.apps.investments.tasks.refresh_nav_prices",
        "schedule": crontab(minute=30, hour=21),
    },
}

# Aadhaar OTP references live in Redis with a TTL
OTP_REDIS_URL = os.getenv("OTP_REDIS_URL", CELERY_BROKER_URL)
AADHAAR_OTP_TTL = int(os.getenv("AADHAAR_OTP_TTL", "120"))
AADHAAR_OTP_MAX_ATTEMPTS = int(os.getenv("AADHAAR_OTP_MAX_ATTEMPTS", "3"))

# ==============================================================================
# KYC / onboarding
# ==============================================================================

KYC_LEVEL0_PAYMENT_CAP = int(os.getenv("KYC_LEVEL0_PAYMENT_CAP", "10000"))
KYC_PROVIDER_TIMEOUT = float(os.getenv("KYC_PROVIDER_TIMEOUT", "10"))
KYC_PROVIDER_BASE_URL = os.getenv("KYC_PROVIDER_BASE_URL", "")
KYC_PROVIDER_API_KEY = os.getenv("KYC_PROVIDER_API_KEY", "")
LIVENESS_MIN_SCORE = int(os.getenv("LIVENESS_MIN_SCORE", "70"))
FACE_MATCH_MIN_SIMILARITY = int(os.getenv("FACE_MATCH_MIN_SIMILARITY", "70"))

# kind -> dotted path of a VerificationProvider
KYC_PROVIDERS = {
    "pan": os.getenv(
        "KYC_PAN_PROVIDER", "saveinvest.apps.kyc.services.providers.MockPanProvider"
    ),
    "aadhaar": os.getenv(
        "KYC_AADHAAR_PROVIDER",
        "saveinvest.apps.kyc.services.providers.MockAadhaarProvider",
    ),
    "bank": os.getenv(
        "KYC_BANK_PROVIDER", "saveinvest.apps.kyc.services.providers.MockBankProvider"
    ),
    "liveness": os.getenv(
        "KYC_LIVENESS_PROVIDER",
        "saveinvest.apps.kyc.services.providers.MockLivenessProvider",
    ),
    "face_match": os.getenv(
        "KYC_FACE_MATCH_PROVIDER",
        "saveinvest.apps.kyc.services.providers.MockFaceMatchProvider",
    ),
}

# ==============================================================================
# Savings / auto-invest
# ==============================================================================

AUTO_SAVE_DEFAULT_PERCENTAGE = int(os.getenv("AUTO_SAVE_DEFAULT_PERCENTAGE", "10"))
AUTO_SAVE_MIN_PERCENTAGE = int(os.getenv("AUTO_SAVE_MIN_PERCENTAGE", "1"))
AUTO_SAVE_MAX_PERCENTAGE = int(os.getenv("AUTO_SAVE_MAX_PERCENTAGE", "50"))
AUTO_SAVE_DEFAULT_MIN_TRANSACTION = int(
    os.getenv("AUTO_SAVE_DEFAULT_MIN_TRANSACTION", "10")
)
AUTO_INVEST_MIN_FIXED_AMOUNT = int(os.getenv("AUTO_INVEST_MIN_FIXED_AMOUNT", "100"))
AUTO_INVEST_MIN_THRESHOLD = int(os.getenv("AUTO_INVEST_MIN_THRESHOLD", "100"))

NAV_FEED_URL = os.getenv("NAV_FEED_URL", "")
NAV_FEED_TIMEOUT = int(os.getenv("NAV_FEED_TIMEOUT", "10"))

# Push gateway for notifications; delivery is skipped when empty
PUSH_GATEWAY_URL = os.getenv("PUSH_GATEWAY_URL", "")
PUSH_GATEWAY_TIMEOUT = int(os.getenv("PUSH_GATEWAY_TIMEOUT", "5"))
