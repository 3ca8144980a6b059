from .context import DispatchContext


class RequestContextMiddleware:
    """Attach a fresh :class:`DispatchContext` to every request."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.dispatch_context = DispatchContext(user=getattr(request, 'user', None))
        return self.get_response(request)


def context_for(request) -> DispatchContext:
    """Return the request's context bound to the DRF-authenticated user."""
    ctx = getattr(request, 'dispatch_context', None)
    if ctx is None:
        ctx = DispatchContext()
        request.dispatch_context = ctx
    # DRF authenticates lazily, after Django middleware has run
    ctx.user = request.user
    return ctx
