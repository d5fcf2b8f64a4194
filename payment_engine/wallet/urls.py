from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.WalletBalanceAPIView.as_view(), name='wallet-balance'),
    path('transactions/', my_views.ListWalletTransactionsAPIView.as_view(), name='wallet-transactions'),
    path('reconcile/', my_views.ReconcileWalletAPIView.as_view(), name='wallet-reconcile'),
]
