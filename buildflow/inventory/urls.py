from django.urls import path
from . import views

urlpatterns = [
    path('inventory/', views.material_list_create, name='material-list-create'),
    path('inventory/<int:pk>/', views.material_detail, name='material-detail'),
    path('inventory/<int:pk>/purchase/', views.material_purchase, name='material-purchase'),
    path('inventory/<int:pk>/usage/', views.material_usage, name='material-usage'),
    path('inventory/<int:pk>/history/', views.material_history, name='material-history'),
]
