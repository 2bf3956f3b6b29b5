import logging

from django.db.models.signals import pre_save
from django.dispatch import receiver

from .models import Contact

logger = logging.getLogger("aero.contacts")


@receiver(pre_save, sender=Contact)
def contact_reset_verification_on_channel_change(sender, instance: Contact, **kwargs):
    """
    A verified contact that changes email or phone must verify again:
    the verification proved ownership of the old channel, not the new one.
    """
    if instance._state.adding or not instance.is_verified:
        return

    previous = (Contact.objects
                .filter(pk=instance.pk)
                .values("email", "phone")
                .first())
    if previous is None:
        return

    if previous["email"] != instance.email or previous["phone"] != instance.phone:
        instance.is_verified = False
        logger.info("Contact %s changed its channels, verification reset", instance.pk)
