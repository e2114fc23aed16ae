"""Starman admin (CORE only).

Contrib models have their own admin in their respective modules:
- starman.contrib.approvals.admin: SaleRequestAdmin

Stars are never edited by hand here: sales are deleted through the
ledger so the staff total follows, and totals are repaired with the
reconcile/resync actions.
"""

from django.apps import apps
from django.contrib import admin, messages
from django.utils.html import format_html

from starman.exceptions import StarmanError
from starman.models import BonusCampaign, CatalogEntry, Sale, Staff
from starman.services.ledger import LedgerService
from starman.services.reconciliation import reconcile


# ===========================================
# Inline Classes (must be defined before StaffAdmin)
# ===========================================


class SaleInline(admin.TabularInline):
    model = Sale
    extra = 0
    fields = ["occurred_at", "kind", "category", "service", "amount", "reference", "stars"]
    readonly_fields = fields
    ordering = ["-occurred_at", "-id"]
    verbose_name_plural = "Salg"

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


_optional_inlines = []

if apps.is_installed("starman.contrib.approvals"):
    from starman.contrib.approvals.models import SaleRequest

    class PendingRequestInline(admin.TabularInline):
        model = SaleRequest
        extra = 0
        fields = ["reference", "category", "service", "preview_stars", "status", "requested_at"]
        readonly_fields = fields
        verbose_name_plural = "Bilagsforespørsler"

        def has_add_permission(self, request, obj=None):
            return False

    _optional_inlines.append(PendingRequestInline)


# ===========================================
# Staff Admin
# ===========================================


@admin.register(Staff)
class StaffAdmin(admin.ModelAdmin):
    list_display = ["code", "name", "stars", "ledger_status", "is_active"]
    list_filter = ["is_active"]
    search_fields = ["code", "name"]
    list_editable = ["is_active"]
    readonly_fields = ["stars", "created_at", "updated_at"]
    inlines = [SaleInline] + _optional_inlines
    actions = ["reconcile_selected", "resync_selected"]

    fieldsets = [
        ("Ansatt", {"fields": ["code", "name", "is_active"]}),
        ("Stjerner", {"fields": ["stars"]}),
        ("Metadata", {"fields": ["metadata"], "classes": ["collapse"]}),
        ("Tidsstempler", {"fields": ["created_at", "updated_at"], "classes": ["collapse"]}),
    ]

    def ledger_status(self, obj):
        check = LedgerService.check_aggregate(obj.code) if obj.is_active else None
        if check is None or check.consistent:
            return format_html('<span style="color:#28a745;">{}</span>', "OK")
        return format_html('<span style="color:#dc3545;">{}</span>', f"{check.drift:+d}")

    ledger_status.short_description = "Avvik"

    @admin.action(description="Kjør avstemming for valgte ansatte")
    def reconcile_selected(self, request, queryset):
        updated = 0
        for staff in queryset.filter(is_active=True):
            report = reconcile(staff_code=staff.code)
            updated += report.updated_count
            if report.error:
                self.message_user(request, f"{staff.code}: {report.error}", messages.ERROR)
        self.message_user(request, f"{updated} salg korrigert.")

    @admin.action(description="Synkroniser stjernetotal med salgsloggen")
    def resync_selected(self, request, queryset):
        for staff in queryset.filter(is_active=True):
            drift = LedgerService.sync_aggregate(staff.code)
            if drift:
                self.message_user(request, f"{staff.code}: {drift:+d}", messages.WARNING)


# ===========================================
# Catalog Admin
# ===========================================


@admin.register(CatalogEntry)
class CatalogEntryAdmin(admin.ModelAdmin):
    list_display = [
        "category",
        "service",
        "base_stars",
        "stack_size",
        "recurring",
        "bracket_range",
        "is_active",
    ]
    list_filter = ["category", "recurring", "is_active"]
    search_fields = ["category", "service"]
    ordering = ["category", "min_amount", "service"]

    def bracket_range(self, obj):
        if not obj.is_bracket:
            return "-"
        upper = obj.max_amount if obj.max_amount is not None else "∞"
        return f"{obj.min_amount or 0} – {upper}"

    bracket_range.short_description = "Beløpsintervall"


@admin.register(BonusCampaign)
class BonusCampaignAdmin(admin.ModelAdmin):
    list_display = ["category", "multiplier", "start_date", "end_date", "enabled"]
    list_filter = ["enabled"]
    ordering = ["-start_date"]


# ===========================================
# Sale Admin
# ===========================================


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ["occurred_at", "staff", "kind", "category", "service", "amount", "stars"]
    list_filter = ["kind", "category"]
    search_fields = ["staff__code", "staff__name", "reference", "service"]
    date_hierarchy = "occurred_at"
    raw_id_fields = ["staff"]
    readonly_fields = ["stars", "version", "created_at", "updated_at"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def delete_model(self, request, obj):
        try:
            LedgerService.delete_sale(obj.pk)
        except StarmanError as e:
            self.message_user(request, e.message, messages.ERROR)

    def delete_queryset(self, request, queryset):
        for sale in queryset:
            self.delete_model(request, sale)
