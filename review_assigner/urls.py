"""
URL configuration for review_assigner project.
"""

from django.urls import path, include

urlpatterns = [
    path('', include('api.urls')),
]
