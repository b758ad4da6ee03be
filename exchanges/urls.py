from django.urls import path
from . import views

urlpatterns = [
    path('exchanges/', views.exchanges, name='exchanges'),
    path('exchanges/eligibility/', views.exchange_eligibility, name='exchange_eligibility'),
    path('admin/exchanges/', views.admin_exchanges, name='admin_exchanges'),
]
