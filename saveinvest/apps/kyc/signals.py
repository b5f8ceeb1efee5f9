from django.db.models.signals import pre_save, post_save
from django.dispatch import receiver

from saveinvest.apps.audit.models import DataAccessLog
from saveinvest.apps.users.models import AppUser, Notification


@receiver(pre_save, sender=AppUser, dispatch_uid="kyc_track_level_change")
def kyc_track_level_change(sender, instance: AppUser, **kwargs):
    if not instance.pk:
        instance._old_kyc = (0, None)
    else:
        old = (
            AppUser.objects.filter(pk=instance.pk)
            .values_list("kyc_level", "kyc_status")
            .first()
        )
        instance._old_kyc = old or (0, None)


@receiver(post_save, sender=AppUser, dispatch_uid="kyc_on_level_change")
def kyc_on_level_change(sender, instance: AppUser, created, **kwargs):
    if created:
        return
    old_level, old_status = getattr(instance, "_old_kyc", (instance.kyc_level, instance.kyc_status))

    if instance.kyc_level > old_level:
        Notification.objects.create(
            user=instance,
            kind="kyc_level_up",
            payload={"kyc_level": instance.kyc_level, "previous_level": old_level},
        )

    if old_status != "APPROVED" and instance.kyc_status == "APPROVED":
        DataAccessLog.objects.create(
            user=instance,
            actor="system",
            resource="kyc.verification",
            action="update",
            context={"new_status": "APPROVED", "kyc_level": instance.kyc_level},
        )
        Notification.objects.create(user=instance, kind="kyc_approved", payload={})
