from django.conf import settings
from django.db import DatabaseError, connection
from django.http import JsonResponse


def health_check(request):
    """Liveness probe: the local database answers."""
    try:
        with connection.cursor() as cursor:
            cursor.execute('SELECT 1')
    except DatabaseError:
        return JsonResponse({'status': 'error', 'database': False}, status=503)

    return JsonResponse({
        'status': 'ok',
        'database': True,
        'online_mode': bool(settings.REMOTE_STORE_URL),
    })


def error_404(request, exception):
    """Custom 404 handler."""
    return JsonResponse({
        'error': 'Not found',
        'status': 404
    }, status=404)


def error_500(request):
    """Custom 500 handler."""
    return JsonResponse({
        'error': 'Internal server error',
        'status': 500
    }, status=500)
