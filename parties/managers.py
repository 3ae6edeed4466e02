# parties/managers.py
from django.db import models
from django.db.models import Q


class PartyQuerySet(models.QuerySet):
    """
    Ready-made filters for dealer parties.
    """

    def active(self):
        return self.filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)

    def in_city(self, city):
        return self.filter(city__iexact=(city or "").strip())

    def search(self, query):
        """
        Search by name, city, phone or GSTIN.
        """
        if not query:
            return self
        return self.filter(
            Q(name__icontains=query)
            | Q(city__icontains=query)
            | Q(phone__icontains=query)
            | Q(gstin__icontains=query)
        )


class PartyManager(models.Manager):
    def get_queryset(self):
        return PartyQuerySet(self.model, using=self._db)

    def active(self):
        return self.get_queryset().active()

    def search(self, query):
        return self.get_queryset().search(query)
