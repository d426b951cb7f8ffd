from django.urls import path

from . import views

app_name = 'counts'

urlpatterns = [
    path('', views.CountListCreateView.as_view(), name='count-list'),
    path('analytics/', views.CountAnalyticsView.as_view(), name='count-analytics'),
    path('reports/generate/', views.CountReportView.as_view(), name='count-report'),

    path('<int:count_id>/', views.CountDetailView.as_view(), name='count-detail'),
    path('<int:count_id>/status/', views.CountStatusView.as_view(), name='count-status'),
    path('<int:count_id>/history/', views.CountHistoryView.as_view(), name='count-history'),

    path('<int:count_id>/items/', views.CountItemListView.as_view(), name='count-items'),
    path('<int:count_id>/items/bulk/', views.CountItemBulkView.as_view(), name='count-items-bulk'),
    path('<int:count_id>/items/<int:item_id>/', views.CountItemRecordView.as_view(), name='count-item-record'),

    path('<int:count_id>/variances/', views.CountVarianceView.as_view(), name='count-variances'),
    path('<int:count_id>/approve/', views.CountApproveView.as_view(), name='count-approve'),
]
