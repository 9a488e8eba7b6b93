"""Utility functions for activity logging"""
import logging

from .models import ActivityLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_activity_log(request=None, action=None, entity_type=None, entity_id=None,
                        details=None, user=None, entity_name=None):
    """
    Create an activity log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, expiry_label, bulk_price_update, etc.)
        entity_type: Name of the model being acted upon
        entity_id: ID of the object
        details: Dictionary describing the change
        user: Optional user override (defaults to request.user if request provided)
        entity_name: Human-readable name of the object (e.g., product name, order number)
    """
    try:
        log_user = user
        if log_user is None and request is not None and hasattr(request, 'user'):
            log_user = request.user

        if not action or not entity_type:
            logger.warning(f"Activity log creation skipped: missing required fields (action={action}, entity_type={entity_type})")
            return None

        return ActivityLog.objects.create(
            user=log_user if log_user and log_user.is_authenticated else None,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else '',
            entity_name=entity_name,
            details=details or {},
            ip_address=get_client_ip(request) if request else None,
        )
    except Exception as e:
        # Logging must never fail the main operation
        logger.error(f"Failed to create activity log: {str(e)}")
        return None


def parse_bool(value, default=None):
    """Interpret query-string booleans ('true', '1', 'yes')"""
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def paginated_response_data(request, queryset, serializer_class, context=None, default_limit=50):
    """Paginate a queryset with Django's Paginator using ?page= and ?limit="""
    from django.core.paginator import Paginator

    try:
        page = max(int(request.query_params.get('page', 1)), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = min(max(int(request.query_params.get('limit', default_limit)), 1), 200)
    except (TypeError, ValueError):
        limit = default_limit

    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)
    serializer = serializer_class(page_obj, many=True, context=context or {'request': request})
    return {
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    }
