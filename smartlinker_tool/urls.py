"""Root URL configuration for smartlinker_tool."""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('', include('smartlinker.urls')),
]
