"""
URL routing for intents app.
"""
from django.urls import path

from . import views

urlpatterns = [
    path('analyze/', views.analyze, name='intent-analyze'),
]
