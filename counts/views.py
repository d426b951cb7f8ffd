"""
Stock Count API Views

Endpoints:
- /api/counts/                             - list / create
- /api/counts/analytics/                   - dashboard cards
- /api/counts/reports/generate/            - variance reports
- /api/counts/<id>/                        - detail / cancel
- /api/counts/<id>/status/                 - lifecycle transition
- /api/counts/<id>/items/                  - count sheet
- /api/counts/<id>/items/<item_id>/        - record one item
- /api/counts/<id>/items/bulk/             - record many items
- /api/counts/<id>/variances/              - variance report
- /api/counts/<id>/approve/                - approve and adjust stock
- /api/counts/<id>/history/                - transition log
"""
import logging

from django.core.exceptions import PermissionDenied
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import APIView

from stock.services import ServiceError, ValidationError
from counts.services import (
    StockCountService, CountItemService, BulkRecordService, CountLifecycleService,
    CountApprovalService, CountAnalyticsService
)
from counts.services.inputs import (
    CountCreateData, CountFilters, RecordItemData, TransitionData, ApprovalData,
    ReportRequest, parse_date, parse_int, parse_choice
)
from counts.models import Count

logger = logging.getLogger(__name__)


def error_response(message: str, code: str = "ERROR", http_status: int = 400, details: dict = None):
    data = {"success": False, "error": {"code": code, "message": message}}
    if details:
        data["error"]["details"] = details
    return Response(data, status=http_status)


def handle_service_error(e: Exception):
    if isinstance(e, ServiceError):
        return Response({"success": False, "error": e.to_dict()}, status=e.status_code)

    logger.exception(f"Unhandled error in count API: {e}")
    return error_response("Internal server error", "SERVER_ERROR", 500)


class BaseCountView(APIView):
    permission_classes = []

    def get_body(self, request) -> dict:
        data = request.data
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object", "body")
        return data

    def get_actor_id(self, request):
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            return user.id
        return parse_int(request.headers.get("X-Actor-Id"), "X-Actor-Id")

    def get_page(self, request):
        page = parse_int(request.query_params.get("page"), "page") or 1
        per_page = parse_int(request.query_params.get("per_page"), "per_page") or 20
        return page, per_page

    def success(self, data: dict, http_status: int = status.HTTP_200_OK):
        return Response({"success": True, **data}, status=http_status)

    def handle_exception(self, exc):
        # DRF still answers its own errors (parse errors, 404s, auth)
        if isinstance(exc, (APIException, Http404, PermissionDenied)):
            return super().handle_exception(exc)
        return handle_service_error(exc)


# ==================== COUNTS ====================

class CountListCreateView(BaseCountView):

    def get(self, request):
        filters = CountFilters.from_query(request.query_params)
        page, per_page = self.get_page(request)
        result = StockCountService.list(filters, page=page, per_page=per_page)
        return self.success(result)

    def post(self, request):
        data = CountCreateData.from_payload(self.get_body(request))
        result = StockCountService.create(data, created_by=self.get_actor_id(request))
        return self.success(result, status.HTTP_201_CREATED)


class CountDetailView(BaseCountView):

    def get(self, request, count_id):
        hide = request.query_params.get("view") == "counting"
        result = StockCountService.get_detail(count_id, hide_system_qty=hide)
        return self.success(result)

    def delete(self, request, count_id):
        data = request.data if isinstance(request.data, dict) else {}
        reason = data.get("reason") or request.query_params.get("reason") or ""
        result = CountLifecycleService.cancel(count_id, reason, actor_id=self.get_actor_id(request))
        return self.success(result)


class CountStatusView(BaseCountView):

    def put(self, request, count_id):
        data = TransitionData.from_payload(self.get_body(request))
        result = CountLifecycleService.transition(
            count_id, data.status, data.notes, actor_id=self.get_actor_id(request)
        )
        return self.success(result)


class CountHistoryView(BaseCountView):

    def get(self, request, count_id):
        return self.success(CountLifecycleService.history(count_id))


# ==================== ITEMS ====================

class CountItemListView(BaseCountView):

    def get(self, request, count_id):
        params = request.query_params
        result = CountItemService.list(
            count_id,
            status=params.get("status"),
            variance_category=params.get("variance_category"),
            search=params.get("search"),
            hide_system_qty=params.get("view") == "counting",
        )
        return self.success(result)


class CountItemRecordView(BaseCountView):

    def put(self, request, count_id, item_id):
        data = RecordItemData.from_payload(self.get_body(request), item_id)
        result = CountItemService.record_item(
            count_id, item_id, data, counter_id=self.get_actor_id(request)
        )
        return self.success(result)


class CountItemBulkView(BaseCountView):

    def post(self, request, count_id):
        body = self.get_body(request)
        result = BulkRecordService.bulk_record(
            count_id, body.get("items"), counter_id=self.get_actor_id(request)
        )
        return self.success(result)


# ==================== APPROVAL & REPORTS ====================

class CountVarianceView(BaseCountView):

    def get(self, request, count_id):
        return self.success(StockCountService.get_variance_report(count_id))


class CountApproveView(BaseCountView):

    def post(self, request, count_id):
        data = ApprovalData.from_payload(self.get_body(request))
        result = CountApprovalService.approve(count_id, data, actor_id=self.get_actor_id(request))
        return self.success(result)


class CountAnalyticsView(BaseCountView):

    def get(self, request):
        params = request.query_params
        count_type = params.get("type")
        if count_type:
            count_type = parse_choice(count_type, Count.CountType.choices, "type")

        result = CountAnalyticsService.analytics(
            date_from=parse_date(params.get("date_from"), "date_from"),
            date_to=parse_date(params.get("date_to"), "date_to"),
            count_type=count_type,
            period=params.get("period"),
        )
        return self.success(result)


class CountReportView(BaseCountView):

    def post(self, request):
        data = ReportRequest.from_payload(self.get_body(request))
        return self.success(CountAnalyticsService.generate_report(data))
