from django.contrib import admin
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin
from unfold.decorators import display
from unfold.contrib.filters.admin import RangeDateTimeFilter

from .models import StockCategory, StockItem, StockLevel, StockAdjustment


@admin.register(StockCategory)
class StockCategoryAdmin(ModelAdmin):
    list_display = ['id', 'name', 'parent', 'sort_order', 'is_active']
    list_filter = ['is_active']
    search_fields = ['name']


@admin.register(StockItem)
class StockItemAdmin(ModelAdmin):
    list_display = ['id', 'name', 'sku', 'barcode', 'category', 'unit', 'cost_display', 'on_hand', 'is_active']
    list_filter = ['is_active', 'category']
    search_fields = ['name', 'sku', 'barcode']
    list_filter_submit = True

    def get_queryset(self, request):
        return super().get_queryset(request).select_related('category', 'stock_level')

    @display(description=_("Unit Cost"))
    def cost_display(self, obj):
        return f"{obj.unit_cost:.4f}"

    @display(description=_("On Hand"))
    def on_hand(self, obj):
        try:
            return obj.stock_level.quantity
        except StockLevel.DoesNotExist:
            return 0


@admin.register(StockLevel)
class StockLevelAdmin(ModelAdmin):
    list_display = ['stock_item', 'quantity', 'last_counted_at', 'last_movement_at']
    search_fields = ['stock_item__name', 'stock_item__sku']
    readonly_fields = ['quantity', 'last_counted_at', 'last_movement_at']


@admin.register(StockAdjustment)
class StockAdjustmentAdmin(ModelAdmin):
    list_display = ['adjustment_number', 'stock_item', 'movement_type', 'quantity',
                    'quantity_before', 'quantity_after', 'total_cost', 'created_at']
    list_filter = ['movement_type', ('created_at', RangeDateTimeFilter)]
    search_fields = ['adjustment_number', 'reference_id', 'stock_item__name']
    list_filter_submit = True

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
