"""
URL configuration for the EduSMS project.

Every school-scoped route sits under ``api/schools/<school_code>/`` so that
``SchoolTenantMiddleware`` can bind the school before the view runs.
"""
from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static

school_patterns = [
    # Accounts app - portal login, logout, session
    path('', include(('accounts.urls', 'accounts'), namespace='accounts')),

    # Academics app - years, terms, grades, classes
    path('', include(('academics.urls', 'academics'), namespace='academics')),

    # Students app - register, parents, alumni
    path('', include(('students.urls', 'students'), namespace='students')),

    # Fees app - fee structures, bursar payments, receipts, statements
    path('', include(('fees.urls', 'fees'), namespace='fees')),

    # Promotions app - criteria, eligibility, execution, wizard
    path('', include(('promotions.urls', 'promotions'), namespace='promotions')),
]

urlpatterns = [
    # Django admin
    path('admin/', admin.site.urls),

    # School-scoped API
    path('api/schools/<str:school_code>/', include(school_patterns)),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
