from django.db import models


# ---------- Tenant / Store ----------
class Store(models.Model):

    """Tenant: every ledger row belongs to exactly one store"""
    name = models.CharField(max_length=200)

    slug = models.SlugField(  # A URL-friendly identifier
        max_length=80, unique=True  # no two stores can have the same slug
    )

    # Store timestamp when the record is first created
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "stores"
        ordering = ("name",)

    def __str__(self):
        return self.name
