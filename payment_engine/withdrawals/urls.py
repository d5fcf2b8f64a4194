from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.ListCreateWithdrawalAPIView.as_view(), name='withdrawal-list-create'),
    path('operator/', my_views.OperatorListWithdrawalAPIView.as_view(), name='withdrawal-operator-list'),
    path('<int:id>/processing/', my_views.MarkWithdrawalProcessingAPIView.as_view(), name='withdrawal-processing'),
    path('<int:id>/complete/', my_views.CompleteWithdrawalAPIView.as_view(), name='withdrawal-complete'),
    path('<int:id>/reject/', my_views.RejectWithdrawalAPIView.as_view(), name='withdrawal-reject'),
]
