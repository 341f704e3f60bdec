class TenantAdminMixin:
    """
    Enforce tenant isolation in Django admin.
    Uses request.store (set by CurrentStoreMiddleware).
    """

    # lookup from the admin's model to its store
    store_lookup = "store"

    def _get_request_store(self, request):
        return getattr(request, "store", None)

    def get_queryset(self, request):
        qs = super().get_queryset(request)

        # If superuser, show everything;
        # otherwise restrict to the active store if available
        if request.user.is_superuser:
            return qs
        store = self._get_request_store(request)
        if store is None:
            # If no store available in request, return none
            return qs.none()
        return qs.filter(**{self.store_lookup: store})

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        """
        Restrict foreignkey dropdowns to the current store where appropriate
        (store field, account field, parent account ...).
        """
        store = self._get_request_store(request)
        rel_model = getattr(db_field, "related_model", None)

        if not request.user.is_superuser and rel_model is not None:
            if db_field.name == "store":
                kwargs["queryset"] = (
                    rel_model.objects.filter(pk=store.pk)
                    if store is not None
                    else rel_model.objects.none()
                )
            # if related model is store-scoped, restrict it to request's store
            elif any(f.name == "store" for f in rel_model._meta.fields):
                kwargs["queryset"] = (
                    rel_model.objects.filter(store=store)
                    if store is not None
                    else rel_model.objects.none()
                )

        return super().formfield_for_foreignkey(db_field, request, **kwargs)

    def save_model(self, request, obj, form, change):
        # Ensure object is always owned by the active store on save (unless superuser)
        if not request.user.is_superuser and hasattr(obj, "store_id"):
            store = self._get_request_store(request)
            if store is not None:
                obj.store = store
        super().save_model(request, obj, form, change)
