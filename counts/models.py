import uuid as uuid_lib

from django.db import models

from stock.models import StockCategory, StockItem


class Count(models.Model):
    class CountType(models.TextChoices):
        FULL = "full", "Full Count"
        CYCLE = "cycle", "Cycle Count"
        SPOT = "spot", "Spot Check"
        CATEGORY = "category", "Category Count"

    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        IN_PROGRESS = "in_progress", "In Progress"
        REVIEW = "review", "Review"
        APPROVED = "approved", "Approved"
        COMPLETED = "completed", "Completed"
        CANCELLED = "cancelled", "Cancelled"

    EDITABLE_STATUSES = (Status.DRAFT, Status.IN_PROGRESS)
    TERMINAL_STATUSES = (Status.COMPLETED, Status.CANCELLED)

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    count_number = models.CharField(max_length=50, unique=True)
    count_type = models.CharField(max_length=20, choices=CountType.choices)
    category = models.ForeignKey(
        StockCategory,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        help_text="Required for category counts",
    )
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.DRAFT, db_index=True
    )
    blind_count = models.BooleanField(default=False)
    count_date = models.DateField(db_index=True)
    deadline_date = models.DateField(null=True, blank=True)

    # Actor ids are recorded as given, never resolved against an auth backend
    assigned_to = models.PositiveIntegerField(null=True, blank=True)
    created_by = models.PositiveIntegerField(null=True, blank=True)

    notes = models.TextField(blank=True, default="")
    started_at = models.DateTimeField(null=True, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    @property
    def is_editable(self) -> bool:
        return self.status in self.EDITABLE_STATUSES

    def __str__(self):
        return self.count_number


class CountItem(models.Model):
    class ItemStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        COUNTED = "counted", "Counted"

    class Condition(models.TextChoices):
        GOOD = "good", "Good"
        DAMAGED = "damaged", "Damaged"
        EXPIRED = "expired", "Expired"
        NOT_FOUND = "not_found", "Not Found"

    class VarianceCategory(models.TextChoices):
        MINOR = "minor", "Minor"
        MODERATE = "moderate", "Moderate"
        MAJOR = "major", "Major"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    count = models.ForeignKey(Count, on_delete=models.CASCADE, related_name="items")
    stock_item = models.ForeignKey(StockItem, on_delete=models.PROTECT, related_name="+")

    # Snapshot taken when the count is created
    system_quantity = models.IntegerField()
    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)

    counted_quantity = models.PositiveIntegerField(null=True, blank=True)
    variance_quantity = models.IntegerField(null=True, blank=True)
    variance_percent = models.DecimalField(max_digits=16, decimal_places=2, null=True, blank=True)
    variance_value = models.DecimalField(max_digits=26, decimal_places=4, null=True, blank=True)
    variance_category = models.CharField(
        max_length=10, choices=VarianceCategory.choices, null=True, blank=True, db_index=True
    )

    item_condition = models.CharField(
        max_length=20, choices=Condition.choices, default=Condition.GOOD
    )
    count_method = models.CharField(max_length=30, default="manual")
    notes = models.TextField(blank=True, default="")
    status = models.CharField(
        max_length=10, choices=ItemStatus.choices, default=ItemStatus.PENDING, db_index=True
    )
    counted_by = models.PositiveIntegerField(null=True, blank=True)
    counted_at = models.DateTimeField(null=True, blank=True)
    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["stock_item__name", "id"]
        constraints = [
            models.UniqueConstraint(fields=["count", "stock_item"], name="unique_count_stock_item"),
        ]

    @property
    def is_counted(self) -> bool:
        return self.counted_quantity is not None

    def __str__(self):
        return f"{self.stock_item.name}: system={self.system_quantity}, counted={self.counted_quantity}"


class CountApproval(models.Model):
    """One committed approval per count item."""

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    count = models.ForeignKey(Count, on_delete=models.CASCADE, related_name="approvals")
    count_item = models.OneToOneField(CountItem, on_delete=models.CASCADE, related_name="approval")
    approved_by = models.PositiveIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    variance_quantity = models.IntegerField()
    variance_value = models.DecimalField(max_digits=26, decimal_places=4, default=0)
    adjustment_created = models.BooleanField(default=False)
    adjustment_reference = models.CharField(max_length=100, blank=True, default="")
    adjustment_number = models.CharField(max_length=50, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.count.count_number} / item {self.count_item_id}"


class CountTransition(models.Model):
    """Append-only audit log of count status changes."""

    count = models.ForeignKey(Count, on_delete=models.CASCADE, related_name="transitions")
    from_status = models.CharField(max_length=20, blank=True, default="")
    to_status = models.CharField(max_length=20, choices=Count.Status.choices)
    actor_id = models.PositiveIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["created_at", "id"]

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("Count transitions are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Count transitions are append-only")

    def __str__(self):
        return f"{self.count_id}: {self.from_status or '-'} -> {self.to_status}"
