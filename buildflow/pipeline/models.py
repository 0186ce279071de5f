from django.conf import settings
from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal
from buildflow.core.models import Company


class Stage(models.Model):
    """Kanban column; ``order`` is the column's position on the company board"""
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='stages')
    name = models.CharField(max_length=100)
    color = models.CharField(max_length=20, default='#94a3b8')
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'stages'
        ordering = ['order', 'id']
        indexes = [
            models.Index(fields=['company', 'order'], name='idx_stage_company_order'),
        ]


class Card(models.Model):
    """Sales lead / project record positioned inside a stage"""
    PRIORITY_CHOICES = [
        ('LOW', 'Low'),
        ('MEDIUM', 'Medium'),
        ('HIGH', 'High'),
        ('URGENT', 'Urgent'),
    ]

    STATUS_ACTIVE = 'ACTIVE'
    STATUS_ARCHIVED = 'ARCHIVED'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_ARCHIVED, 'Archived'),
    ]

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='cards')
    stage = models.ForeignKey(Stage, on_delete=models.CASCADE, related_name='cards')
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='owned_cards')
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    contact_name = models.CharField(max_length=200, blank=True)
    contact_email = models.EmailField(blank=True)
    contact_phone = models.CharField(max_length=30, blank=True)
    project_address = models.CharField(max_length=500, blank=True)
    budget = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True,
                                 validators=[MinValueValidator(Decimal('0.01'))])
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default='MEDIUM')
    timeline = models.CharField(max_length=100, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    # Position inside the stage, 0..n-1 with no gaps
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    class Meta:
        db_table = 'cards'
        ordering = ['order', 'id']
        indexes = [
            models.Index(fields=['stage', 'status', 'order'], name='idx_card_stage_status_order'),
            models.Index(fields=['company', 'status'], name='idx_card_company_status'),
        ]
