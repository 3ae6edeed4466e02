# catalog/managers.py
from django.db import models
from django.db.models import Q


class ItemQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_active=True)

    def inactive(self):
        return self.filter(is_active=False)

    def of_company(self, company):
        return self.filter(company__iexact=(company or "").strip())

    def search(self, query):
        if not query:
            return self
        return self.filter(Q(name__icontains=query) | Q(category__icontains=query))

    def category_options(self) -> list[str]:
        """
        Distinct non-empty categories, sorted case-insensitively.
        """
        values = (
            self.exclude(category__isnull=True)
            .exclude(category="")
            .values_list("category", flat=True)
            .distinct()
        )
        return sorted({v for v in values if v and v.strip()}, key=str.casefold)


class ItemManager(models.Manager):
    def get_queryset(self):
        return ItemQuerySet(self.model, using=self._db)

    def active(self):
        return self.get_queryset().active()

    def category_options(self) -> list[str]:
        return self.get_queryset().category_options()

    def search(self, query):
        return self.get_queryset().search(query)
