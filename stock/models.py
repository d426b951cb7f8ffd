import uuid as uuid_lib

from django.db import models



class StockCategory(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=100)
    parent = models.ForeignKey(
        "self",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="children",
    )
    sort_order = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "stock categories"
        ordering = ["sort_order", "name"]

    def __str__(self):
        return self.name


class StockItem(models.Model):
    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    name = models.CharField(max_length=200)
    sku = models.CharField(max_length=50, unique=True, blank=True, null=True)
    barcode = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    category = models.ForeignKey(
        StockCategory,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="items",
    )
    unit = models.CharField(max_length=10, default="pcs")

    # Cost tracking
    cost_price = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    avg_cost_price = models.DecimalField(max_digits=15, decimal_places=4, default=0)

    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    @property
    def unit_cost(self):
        return self.avg_cost_price or self.cost_price

    def __str__(self):
        return self.name


class StockLevel(models.Model):
    """
    Current on-hand quantity per item.
    Updated only through stock adjustments.
    """

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    stock_item = models.OneToOneField(
        StockItem, on_delete=models.CASCADE, related_name="stock_level"
    )
    quantity = models.IntegerField(default=0)
    last_counted_at = models.DateTimeField(null=True, blank=True, db_index=True)
    last_movement_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.stock_item.name}: {self.quantity}"


class StockAdjustment(models.Model):
    class MovementType(models.TextChoices):
        COUNT_ADJUSTMENT = "COUNT_ADJUSTMENT", "Count Adjustment"
        MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT", "Manual Adjustment"
        OPENING_BALANCE = "OPENING_BALANCE", "Opening Balance"

    uuid = models.UUIDField(default=uuid_lib.uuid4, unique=True, editable=False)
    adjustment_number = models.CharField(max_length=50, unique=True)
    # Caller-supplied idempotency key; an adjustment is applied at most once per reference
    reference_id = models.CharField(max_length=100, unique=True)
    stock_item = models.ForeignKey(
        StockItem, on_delete=models.PROTECT, related_name="adjustments"
    )
    movement_type = models.CharField(
        max_length=30, choices=MovementType.choices, db_index=True
    )

    quantity = models.IntegerField()
    quantity_before = models.IntegerField()
    quantity_after = models.IntegerField()
    unit_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)
    total_cost = models.DecimalField(max_digits=15, decimal_places=4, default=0)

    user_id = models.PositiveIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["stock_item", "created_at"]),
        ]

    def __str__(self):
        return f"{self.adjustment_number} | {self.quantity:+}"
