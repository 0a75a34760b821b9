"""
Marketplace signals.

``load_published`` is sent once the publishing transaction has committed;
receivers must not assume they run inside a transaction.
"""

import logging

from django.contrib.auth import get_user_model
from django.dispatch import Signal, receiver

from marketplace.services import notifications

logger = logging.getLogger(__name__)

# sender=Load, load=<Load instance>
load_published = Signal()


@receiver(load_published)
def notify_carriers_of_new_load(sender, load, **kwargs):
    User = get_user_model()
    carriers = User.objects.filter(
        role=User.Role.CARRIER, is_active=True, is_documents_verified=True
    )
    if load.required_vehicle_type:
        carriers = carriers.filter(
            vehicles__vehicle_type=load.required_vehicle_type,
            vehicles__is_active=True,
        ).distinct()
    emails = list(carriers.values_list("email", flat=True))
    logger.info("Load %s published, notifying %d carriers", load.pk, len(emails))
    notifications.notify_load_published(load, emails)
