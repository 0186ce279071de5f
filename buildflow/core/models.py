from django.contrib.auth.models import AbstractUser
from django.db import models


class Company(models.Model):
    """Tenant: every stage, card, activity and material belongs to one company"""
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    app_name = models.CharField(max_length=100, blank=True, default='BuildFlow CRM')
    website = models.URLField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'companies'
        ordering = ['name']


class User(AbstractUser):
    """Extended user model bound to a company with a CRM role"""
    ROLE_ADMIN = 'ADMIN'
    ROLE_MEMBER = 'MEMBER'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_MEMBER, 'Member'),
    ]

    phone = models.CharField(max_length=20, blank=True, null=True)
    company = models.ForeignKey(Company, on_delete=models.CASCADE, null=True, blank=True, related_name='users')
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_MEMBER)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_company_admin(self):
        return self.role == self.ROLE_ADMIN

    class Meta:
        db_table = 'users'


class Activity(models.Model):
    """Company activity feed (card lifecycle, stage management, stock alerts)"""
    TYPE_CHOICES = [
        ('card_created', 'Card Created'),
        ('card_updated', 'Card Updated'),
        ('card_moved', 'Card Moved'),
        ('card_deleted', 'Card Deleted'),
        ('stage_created', 'Stage Created'),
        ('stage_updated', 'Stage Updated'),
        ('stage_deleted', 'Stage Deleted'),
        ('stages_reordered', 'Stages Reordered'),
        ('material_purchase', 'Material Purchased'),
        ('material_usage', 'Material Used'),
        ('low_stock_alert', 'Low Stock Alert'),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='activities')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='activities')
    card = models.ForeignKey('pipeline.Card', on_delete=models.SET_NULL, null=True, blank=True, related_name='activities')
    type = models.CharField(max_length=50, choices=TYPE_CHOICES)
    description = models.TextField()
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.type}: {self.description}"

    class Meta:
        db_table = 'activities'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['company', '-created_at'], name='idx_activity_company_created'),
            models.Index(fields=['type'], name='idx_activity_type'),
        ]
