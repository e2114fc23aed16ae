"""Approvals admin."""

from django.contrib import admin, messages
from django.utils.html import format_html

from starman.contrib.approvals.models import SaleRequest
from starman.contrib.approvals.service import ApprovalService
from starman.exceptions import StarmanError


@admin.register(SaleRequest)
class SaleRequestAdmin(admin.ModelAdmin):
    list_display = [
        "reference",
        "staff",
        "category",
        "service",
        "amount",
        "preview_stars",
        "status_badge",
        "requested_at",
    ]
    list_filter = ["status", "category"]
    search_fields = ["reference", "staff__code", "staff__name"]
    raw_id_fields = ["staff", "sale"]
    readonly_fields = ["preview_stars", "sale", "requested_at", "decided_at", "decided_by"]
    date_hierarchy = "requested_at"
    actions = ["approve_selected", "decline_selected"]

    def status_badge(self, obj):
        colors = {
            "pending": "#ffc107",
            "approved": "#28a745",
            "declined": "#dc3545",
        }
        return format_html(
            '<span style="background:{}; color:#fff; padding:2px 8px; '
            'border-radius:3px; font-size:11px;">{}</span>',
            colors.get(obj.status, "#6c757d"),
            obj.get_status_display(),
        )

    status_badge.short_description = "Status"

    @admin.action(description="Godkjenn valgte forespørsler")
    def approve_selected(self, request, queryset):
        approved = 0
        for sale_request in queryset.order_by("requested_at", "id"):
            try:
                ApprovalService.approve(sale_request.pk, decided_by=request.user.get_username())
                approved += 1
            except StarmanError as e:
                self.message_user(request, f"{sale_request.reference}: {e.message}", messages.WARNING)
        self.message_user(request, f"{approved} forespørsel(er) godkjent.")

    @admin.action(description="Avslå valgte forespørsler")
    def decline_selected(self, request, queryset):
        declined = 0
        for sale_request in queryset:
            try:
                ApprovalService.decline(sale_request.pk, decided_by=request.user.get_username())
                declined += 1
            except StarmanError as e:
                self.message_user(request, f"{sale_request.reference}: {e.message}", messages.WARNING)
        self.message_user(request, f"{declined} forespørsel(er) avslått.")
