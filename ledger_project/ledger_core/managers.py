from django.db import models

# -----------------------------------------
# Enforce tenant scoping across all models
# that belong to a store
# -----------------------------------------
class TenantQuerySet(models.QuerySet):
    def for_store(self, store):         # Add queryset helper
        return self.filter(store=store)  # Apply filter

    def active(self, store):
        return self.filter(
                            store=store,     # enforce tenant scoping
                            is_active=True   # only fetch active records
                        )
    # Enables query:
    # Account.objects.active(store)


# Attach TenantQuerySet to .objects
class TenantManager(models.Manager):

    def get_queryset(self):  # every model gets TenantQuerySet (so .for_store() is always available)
        return TenantQuerySet(self.model, using=self._db)

    def for_store(self, store):  # can call for_store() directly on objects
        return self.get_queryset().for_store(store)

    def active(self, store):
        return self.get_queryset().active(store)


# Journal lines carry no store column, scope through their entry
class JournalLineQuerySet(models.QuerySet):
    def for_store(self, store):
        return self.filter(entry__store=store)

    def posted(self):
        return self.filter(entry__status="posted")


class JournalLineManager(models.Manager):

    def get_queryset(self):
        return JournalLineQuerySet(self.model, using=self._db)

    def for_store(self, store):
        return self.get_queryset().for_store(store)

    def posted(self):
        return self.get_queryset().posted()
