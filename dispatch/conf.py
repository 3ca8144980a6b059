from django.conf import settings

DEFAULTS = {
    'NUMBER_PREFIX': 'OC',
    'MAX_EXTRA_NURSES': 5,
    'EVENTS_GROUP': 'occurrences',
    'CLAIM_RETRIES': 1,
}


def dispatch_setting(name: str):
    """Read a key from ``settings.DISPATCH`` falling back to the defaults."""
    return getattr(settings, 'DISPATCH', {}).get(name, DEFAULTS[name])
