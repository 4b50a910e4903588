from __future__ import annotations

from django.db.models.signals import post_save
from django.dispatch import receiver

from . import realtime
from .models import PaymentIntent


@receiver(post_save, sender=PaymentIntent)
def publish_intent_change(sender, instance: PaymentIntent, created: bool, **kwargs) -> None:
    # transições usam UPDATE condicional e publicam por conta própria
    if not created:
        realtime.publish(instance.pk, instance.status)
