from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Shared pagination for order, payment, custody and transfer listings.

    Clients can tune page size with `?page_size=`; values are capped so a
    branch with a long order history still returns bounded payloads.
    """

    page_size_query_param = "page_size"
    max_page_size = 200
