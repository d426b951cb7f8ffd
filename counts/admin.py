from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html
from django.utils.translation import gettext_lazy as _
from unfold.admin import ModelAdmin, TabularInline
from unfold.decorators import display
from unfold.contrib.filters.admin import RangeDateFilter, RangeDateTimeFilter

from .models import Count, CountItem, CountApproval, CountTransition


class ReadOnlyAdminMixin:
    """Counts change only through the service layer."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class CountItemInline(ReadOnlyAdminMixin, TabularInline):
    model = CountItem
    extra = 0
    fields = ('stock_item', 'system_quantity', 'counted_quantity', 'variance_quantity',
              'variance_value', 'variance_category', 'status')
    readonly_fields = fields


class CountTransitionInline(ReadOnlyAdminMixin, TabularInline):
    model = CountTransition
    extra = 0
    fields = ('from_status', 'to_status', 'actor_id', 'notes', 'created_at')
    readonly_fields = fields


@admin.register(Count)
class CountAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['count_number', 'count_type', 'status_badge', 'blind_count',
                    'count_date', 'deadline_date', 'assigned_to', 'created_at']
    list_filter = [
        'status',
        'count_type',
        'blind_count',
        ('count_date', RangeDateFilter),
    ]
    search_fields = ['count_number', 'notes']
    list_filter_submit = True
    inlines = [CountItemInline, CountTransitionInline]

    @display(description=_("Status"), label=True)
    def status_badge(self, obj):
        colors = {
            'draft': 'info',
            'in_progress': 'warning',
            'review': 'warning',
            'approved': 'success',
            'completed': 'success',
            'cancelled': 'danger',
        }
        return colors.get(obj.status, 'info'), obj.get_status_display()


@admin.register(CountItem)
class CountItemAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['id', 'count_link', 'stock_item', 'system_quantity', 'counted_quantity',
                    'variance_quantity', 'variance_badge', 'status']
    list_filter = ['status', 'variance_category', 'item_condition']
    search_fields = ['stock_item__name', 'stock_item__sku', 'count__count_number']
    list_filter_submit = True

    @display(description=_("Count"))
    def count_link(self, obj):
        url = reverse('admin:counts_count_change', args=[obj.count_id])
        return format_html('<a href="{}">{}</a>', url, obj.count.count_number)

    @display(description=_("Variance"), label=True)
    def variance_badge(self, obj):
        if not obj.variance_category:
            return 'info', '-'
        colors = {'minor': 'success', 'moderate': 'warning', 'major': 'danger'}
        return colors[obj.variance_category], obj.get_variance_category_display()


@admin.register(CountApproval)
class CountApprovalAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['id', 'count', 'count_item', 'approved_by', 'variance_quantity',
                    'variance_value', 'adjustment_created', 'adjustment_number', 'created_at']
    list_filter = ['adjustment_created', ('created_at', RangeDateTimeFilter)]
    search_fields = ['count__count_number', 'adjustment_reference', 'adjustment_number']
    list_filter_submit = True


@admin.register(CountTransition)
class CountTransitionAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = ['id', 'count', 'from_status', 'to_status', 'actor_id', 'created_at']
    list_filter = ['to_status', ('created_at', RangeDateTimeFilter)]
    search_fields = ['count__count_number', 'notes']
    list_filter_submit = True
