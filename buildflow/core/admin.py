from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import Company, User, Activity


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'app_name', 'created_at']
    search_fields = ['name', 'email']
    ordering = ['name']


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'first_name', 'last_name', 'company', 'role', 'is_active', 'date_joined']
    list_filter = ['role', 'is_active', 'is_staff', 'company']
    search_fields = ['username', 'email', 'first_name', 'last_name']
    ordering = ['username']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Company', {'fields': ('company', 'role', 'phone')}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ('Company', {'fields': ('company', 'role', 'phone')}),
    )


@admin.register(Activity)
class ActivityAdmin(admin.ModelAdmin):
    list_display = ['type', 'description', 'company', 'user', 'card', 'created_at']
    list_filter = ['type', 'company', 'created_at']
    search_fields = ['description', 'user__username']
    ordering = ['-created_at']
    readonly_fields = ['company', 'user', 'card', 'type', 'description', 'metadata', 'created_at']
