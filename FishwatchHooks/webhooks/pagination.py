from urllib.parse import parse_qs, urlparse

from django.conf import settings
from rest_framework.exceptions import NotFound
from rest_framework.pagination import CursorPagination
from rest_framework.response import Response

from .exceptions import InvalidQuery


class DeliveryCursorPagination(CursorPagination):
    """Newest-first delivery pages with an opaque ``cursor`` and a ``limit`` capped by settings."""

    ordering = ('-created_at', '-id')
    page_size_query_param = 'limit'

    def __init__(self):
        self.page_size = settings.WEBHOOK_PAGE_SIZE
        self.max_page_size = settings.WEBHOOK_MAX_PAGE_SIZE

    def decode_cursor(self, request):
        try:
            return super().decode_cursor(request)
        except NotFound:
            raise InvalidQuery(f"Malformed cursor: {request.query_params.get(self.cursor_query_param)}")

    def get_next_cursor(self):
        link = self.get_next_link()
        if link is None:
            return None
        return parse_qs(urlparse(link).query)[self.cursor_query_param][0]

    def get_paginated_response(self, data):
        return Response({"results": data, "nextCursor": self.get_next_cursor()})
