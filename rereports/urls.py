"""
URL configuration do projeto Rereports.

The `urlpatterns` list routes URLs to views. For more information please see:
    https://docs.djangoproject.com/en/5.0/topics/http/urls/
"""

from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # Autenticação da API navegável do DRF
    path('api-auth/', include('rest_framework.urls')),

    # API REST do ciclo de lançamentos
    path('api/v1/', include('core.urls')),
]

# Configuração do título do Admin
admin.site.site_header = 'Rereports - Gestão de Reembolsos'
admin.site.site_title = 'Rereports Admin'
admin.site.index_title = 'Painel de Administração'
