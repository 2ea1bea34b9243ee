# accounts/urls.py

from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    # =============================================================================
    # PORTAL AUTHENTICATION (admin, bursar, parent, student)
    # =============================================================================
    path('<str:portal>/login/', views.portal_login, name='portal_login'),
    path('<str:portal>/logout/', views.portal_logout, name='portal_logout'),
    path('<str:portal>/session/', views.portal_session, name='portal_session'),
]
