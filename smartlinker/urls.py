"""URL configuration for the smartlinker app."""

from django.urls import path

from . import views

app_name = 'smartlinker'

urlpatterns = [
    path('documents/<int:document_id>/suggestions/', views.document_suggestions, name='suggestions'),
    path(
        'documents/<int:document_id>/suggestions/refresh/',
        views.refresh_document_suggestions,
        name='refresh_suggestions',
    ),
    path(
        'documents/<int:document_id>/suggestions/apply/',
        views.apply_document_suggestion,
        name='apply_suggestion',
    ),
]
