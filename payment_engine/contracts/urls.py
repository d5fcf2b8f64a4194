from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.ListContractsAPIView.as_view(), name='contract-list'),
    path('accept-proposal/', my_views.AcceptProposalAPIView.as_view(), name='contract-accept-proposal'),
    path('<int:id>/', my_views.RetrieveContractAPIView.as_view(), name='contract-detail'),
]
