from django.urls import include, path

urlpatterns = [
    path('', include('dkim_manager.urls')),
]
