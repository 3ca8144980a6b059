"""
ASGI config for the ambulance project.

Serves HTTP through Django and the occurrence event stream through Channels.
Settings must be configured before any Django-dependent import.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ambulance.settings")

import django  # noqa: E402
django.setup()  # noqa: E402

from django.core.asgi import get_asgi_application  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.auth import AuthMiddlewareStack  # noqa: E402
from django.urls import path  # noqa: E402

from dispatch.realtime.consumers import OccurrenceEventsConsumer  # noqa: E402

django_asgi_app = get_asgi_application()

websocket_urlpatterns = [
    path("ws/occurrences/", OccurrenceEventsConsumer.as_asgi()),
]

application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
})
