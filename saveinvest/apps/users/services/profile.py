"""Profile facts feeding the onboarding state machine: profile, PIN and biometrics."""
import logging
import re

from django.contrib.auth.hashers import check_password, make_password
from django.db import IntegrityError, transaction

from saveinvest.apps.users.models import AppUser, NotificationPreference
from saveinvest.errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)

MOBILE_RE = re.compile(r"^[6-9][0-9]{9}$")
PIN_RE = re.compile(r"^[0-9]{4,6}$")

PREFERENCE_FIELDS = (
    "push_enabled",
    "savings_alerts",
    "investment_alerts",
    "kyc_alerts",
    "transaction_alerts",
)


def register_user(mobile: str, name: str = None, email: str = None) -> AppUser:
    if not MOBILE_RE.match(mobile or ""):
        raise ValidationError("Invalid mobile number")
    if AppUser.objects.filter(mobile=mobile).exists():
        raise ConflictError("Mobile number already registered")
    try:
        with transaction.atomic():
            user = AppUser.objects.create(mobile=mobile, name=name, email=email)
    except IntegrityError as e:
        raise ConflictError("Mobile number already registered") from e
    logger.info(f"Registered user {user.id}")
    return user


def update_profile(user: AppUser, **fields) -> AppUser:
    changed = []
    for attr in ("name", "email"):
        if attr in fields and fields[attr] is not None:
            setattr(user, attr, fields[attr].strip() or None)
            changed.append(attr)
    if changed:
        user.save(update_fields=changed + ["updated_at"])
    return user


def set_pin(user: AppUser, pin: str) -> AppUser:
    if not PIN_RE.match(pin or ""):
        raise ValidationError("PIN must be 4 to 6 digits")
    user.pin_hash = make_password(pin)
    user.save(update_fields=["pin_hash", "updated_at"])
    return user


def verify_pin(user: AppUser, pin: str) -> bool:
    verified = bool(user.pin_hash) and check_password(pin, user.pin_hash)
    if not verified:
        logger.info(f"PIN check failed for user {user.id}")
    return verified


def set_biometric(user: AppUser, enabled: bool) -> AppUser:
    user.biometric_enabled = bool(enabled)
    user.save(update_fields=["biometric_enabled", "updated_at"])
    return user


def get_preferences(user: AppUser) -> NotificationPreference:
    pref, _ = NotificationPreference.objects.get_or_create(user=user)
    return pref


def update_preferences(user: AppUser, **flags) -> NotificationPreference:
    pref = get_preferences(user)
    changed = [f for f in PREFERENCE_FIELDS if f in flags]
    for f in changed:
        setattr(pref, f, bool(flags[f]))
    if changed:
        pref.save(update_fields=changed + ["updated_at"])
    return pref
