# promotions/urls.py

from django.urls import path
from . import views

app_name = 'promotions'

urlpatterns = [
    # =============================================================================
    # PROMOTIONS
    # =============================================================================
    path('promotions/', views.promotions, name='promotions'),
    path('promotions/wizard/', views.promotion_wizard, name='promotion_wizard'),
]
