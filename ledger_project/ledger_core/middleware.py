from django.utils.deprecation import MiddlewareMixin

from .models import Store


class CurrentStoreMiddleware(MiddlewareMixin):
    # Run on every request and
    # attach a .store attribute to the request, based on the session
    def process_request(self, request):
        request.store = None
        if not request.user.is_authenticated:  # Unauthenticated users
            return

        # The store a staff user is working on is kept in the session
        # as "active_store_id"
        store_id = request.session.get("active_store_id")
        if store_id:
            # a stale or tampered id simply leaves the request unscoped
            request.store = Store.objects.filter(pk=store_id).first()
