import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import AppUser, Notification, NotificationPreference
from .tasks import deliver_notification
from saveinvest.apps.kyc.models import KycDocument
from saveinvest.apps.savings.models import SavingsConfig, SavingsWallet

logger = logging.getLogger(__name__)


# Every user gets its fact store, wallet, auto-save config and preferences up front
@receiver(
    post_save, sender=AppUser, dispatch_uid="users.signals.create_related_objects"
)
def create_user_related_objects(sender, instance, created, **kwargs):
    if created:
        KycDocument.objects.create(user=instance)
        SavingsWallet.objects.create(user=instance)
        SavingsConfig.objects.create(
            user=instance,
            percentage=settings.AUTO_SAVE_DEFAULT_PERCENTAGE,
            min_transaction_amount=Decimal(settings.AUTO_SAVE_DEFAULT_MIN_TRANSACTION),
        )
        NotificationPreference.objects.create(user=instance)


def _enqueue_delivery(notification_id):
    try:
        deliver_notification.delay(str(notification_id))
    except Exception as e:
        # Notifications are fire-and-forget; a broker outage must not surface to callers
        logger.warning(f"Could not enqueue notification {notification_id}: {e}")


# When a Notification row commits, hand it to the delivery task
@receiver(
    post_save,
    sender=Notification,
    dispatch_uid="notifications.signals.send_notification",
)
def send_notification_on_creation(sender, instance, created, **kwargs):
    if not created or instance.sent:
        return
    transaction.on_commit(lambda: _enqueue_delivery(instance.pk))
