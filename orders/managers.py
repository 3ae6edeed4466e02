# orders/managers.py
from django.db import models
from django.db.models import Prefetch, Q


class OrderQuerySet(models.QuerySet):
    """
    Filters used by the orders list and the analytics pages.
    """

    def with_status(self, status):
        if not status or status == "all":
            return self
        return self.filter(status=status)

    def not_dispatched(self):
        return self.exclude(status=self.model.Status.DISPATCHED)

    def search(self, query):
        """
        Search by order code or party name.
        """
        if not query:
            return self
        return self.filter(
            Q(order_code__icontains=query) | Q(party__name__icontains=query)
        )

    def with_party_lines(self):
        from .models import OrderLine

        return self.select_related("party").prefetch_related(
            Prefetch(
                "lines",
                queryset=OrderLine.objects.select_related("item").order_by("id"),
            )
        )

    def newest_first(self):
        return self.order_by("-order_date", "-id")


class OrderManager(models.Manager):
    def get_queryset(self):
        return OrderQuerySet(self.model, using=self._db)

    def with_party_lines(self):
        return self.get_queryset().with_party_lines()


class DispatchEventQuerySet(models.QuerySet):
    def for_order(self, order_id):
        return self.filter(order_id=order_id)

    def between(self, date_from=None, date_to=None):
        """
        Inclusive range over the local calendar date of the dispatch.
        """
        qs = self
        if date_from:
            qs = qs.filter(dispatched_at__date__gte=date_from)
        if date_to:
            qs = qs.filter(dispatched_at__date__lte=date_to)
        return qs

    def chronological(self):
        return self.order_by("dispatched_at", "id")


class DispatchEventManager(models.Manager):
    def get_queryset(self):
        return DispatchEventQuerySet(self.model, using=self._db)

    def for_order(self, order_id):
        return self.get_queryset().for_order(order_id)

    def between(self, date_from=None, date_to=None):
        return self.get_queryset().between(date_from, date_to)
