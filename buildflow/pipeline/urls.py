from django.urls import path
from .views import (
    stage_list_create, stage_list, stage_detail, stage_reorder,
    card_create, card_detail, card_move,
)

urlpatterns = [
    # Stage endpoints
    path('stage/', stage_list_create, name='stage-list-create'),
    path('stage/reorder/', stage_reorder, name='stage-reorder'),
    path('stage/<int:pk>/', stage_detail, name='stage-detail'),
    path('stages/', stage_list, name='stage-list'),

    # Card endpoints
    path('card/', card_create, name='card-create'),
    path('card/<int:pk>/', card_detail, name='card-detail'),
    path('card/<int:pk>/move/', card_move, name='card-move'),
]
