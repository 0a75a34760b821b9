"""Build the external collaborators named in settings."""

from django.conf import settings
from django.utils.module_loading import import_string


def get_geocoder():
    return import_string(settings.MARKETPLACE_GEOCODER)()


def get_payment_gateway():
    return import_string(settings.MARKETPLACE_PAYMENT_GATEWAY)()


def get_document_generator():
    return import_string(settings.MARKETPLACE_DOCUMENT_GENERATOR)()
