from django.contrib import admin

from .models import Tender, TenderDocument


class TenderDocumentInline(admin.TabularInline):
    model = TenderDocument
    extra = 0
    fields = ("document_id", "title", "format", "url", "date_published", "date_modified")


@admin.register(Tender)
class TenderAdmin(admin.ModelAdmin):
    list_display = (
        "ocid",
        "title",
        "entity_name",
        "main_procurement_category",
        "procurement_method_details",
        "published_date",
        "end_date",
    )
    search_fields = ("ocid", "title", "description", "procuring_entity__name")
    list_filter = ("main_procurement_category", "procurement_method", "status")
    readonly_fields = ("created_at", "updated_at")
    date_hierarchy = "published_date"
    inlines = [TenderDocumentInline]

    @admin.display(description="Procuring entity")
    def entity_name(self, obj):
        entity = obj.entity
        return entity.name if entity else ""


@admin.register(TenderDocument)
class TenderDocumentAdmin(admin.ModelAdmin):
    list_display = ("document_id", "title", "tender", "format", "date_published")
    search_fields = ("document_id", "title", "tender__ocid")
    list_select_related = ("tender",)
