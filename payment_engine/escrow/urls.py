from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.ListEscrowAPIView.as_view(), name='escrow-list'),
    path('stats/', my_views.EscrowStatsAPIView.as_view(), name='escrow-stats'),
    path('contract/<int:contract_id>/', my_views.RetrieveContractEscrowAPIView.as_view(), name='escrow-by-contract'),
    path('<int:id>/', my_views.RetrieveEscrowAPIView.as_view(), name='escrow-detail'),
    path('<int:id>/confirm-payment/', my_views.ConfirmPaymentAPIView.as_view(), name='escrow-confirm-payment'),
    path('<int:id>/mark-work-completed/', my_views.MarkWorkCompletedAPIView.as_view(),
         name='escrow-mark-work-completed'),
    path('<int:id>/release-funds/', my_views.ReleaseFundsAPIView.as_view(), name='escrow-release-funds'),
    path('<int:id>/dispute/', my_views.DisputeAPIView.as_view(), name='escrow-dispute'),
    path('<int:id>/refund/', my_views.RefundAPIView.as_view(), name='escrow-refund'),
    path('<int:id>/transitions/', my_views.ListEscrowTransitionsAPIView.as_view(), name='escrow-transitions'),
]
