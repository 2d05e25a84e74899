from django.urls import path

from . import views
from .conf import get_setting

urlpatterns = [
    path('healthz', views.healthz, name='healthz'),
    path('readyz', views.readyz, name='readyz'),
]

if get_setting('DKIM_MANAGER_WEBHOOKS_ENABLED'):
    urlpatterns += [
        path('validate-dkim-manager-atelierhsn-com-v1-dkimkey', views.validate_dkimkey_view, name='validate_dkimkey'),
        path('validate-secret', views.validate_secret_view, name='validate_secret'),
        path('validate-externaldns-k8s-io-v1alpha1-dnsendpoint', views.validate_dnsendpoint_view, name='validate_dnsendpoint'),
        path('convert', views.convert_view, name='convert'),
    ]
