from django.contrib import admin
from .models import Stage, Card


class CardInline(admin.TabularInline):
    model = Card
    extra = 0
    fields = ['title', 'priority', 'status', 'order']
    ordering = ['order']


@admin.register(Stage)
class StageAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'color', 'order', 'updated_at']
    list_filter = ['company']
    search_fields = ['name']
    ordering = ['company', 'order']
    inlines = [CardInline]


@admin.register(Card)
class CardAdmin(admin.ModelAdmin):
    list_display = ['title', 'company', 'stage', 'priority', 'status', 'order', 'budget', 'updated_at']
    list_filter = ['status', 'priority', 'company']
    search_fields = ['title', 'contact_name', 'contact_email']
    ordering = ['stage', 'order']
    readonly_fields = ['created_at', 'updated_at']
