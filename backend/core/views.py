from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.db.models import Q
from .models import StoreSettings, ActivityLog
from .permissions import HasAdminPermission
from .serializers import (
    UserSerializer, UserCreateSerializer, AdminUserSerializer,
    StoreSettingsSerializer, ActivityLogSerializer
)
from .utils import create_activity_log, paginated_response_data

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        data['user'] = UserSerializer(self.user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['role'] = user.role
        token['permissions'] = list(user.permissions or [])
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that answers 401 for tokens of deleted users"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """Customer registration endpoint"""
    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        token = CustomTokenObtainPairSerializer.get_token(user)
        return Response({
            'user': UserSerializer(user).data,
            'access': str(token.access_token),
            'refresh': str(token),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get or update the current user's profile"""
    if request.method == 'GET':
        return Response(UserSerializer(request.user).data)
    serializer = UserSerializer(request.user, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# User management
@api_view(['GET', 'POST'])
@permission_classes([HasAdminPermission('settings_management')])
def user_list_create(request):
    """List all users or create a new user"""
    if request.method == 'GET':
        users = User.objects.all().order_by('username')
        role = request.query_params.get('role')
        if role:
            users = users.filter(role=role)
        search = request.query_params.get('search')
        if search:
            users = users.filter(
                Q(username__icontains=search) | Q(email__icontains=search) |
                Q(first_name__icontains=search) | Q(last_name__icontains=search)
            )
        return Response(paginated_response_data(request, users, AdminUserSerializer))
    serializer = AdminUserSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        create_activity_log(request=request, action='create', entity_type='User',
                            entity_id=user.id, entity_name=user.username,
                            details={'role': user.role, 'permissions': user.permissions})
        return Response(AdminUserSerializer(user).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([HasAdminPermission('settings_management')])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        return Response(AdminUserSerializer(user).data)
    elif request.method in ('PUT', 'PATCH'):
        if user.role == 'superadmin' and request.user.role != 'superadmin':
            return Response({'success': False, 'message': 'Only a superadmin can change a superadmin'},
                            status=status.HTTP_403_FORBIDDEN)
        serializer = AdminUserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_activity_log(request=request, action='update', entity_type='User',
                                entity_id=user.id, entity_name=user.username,
                                details={'fields': sorted(request.data.keys())})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'success': False, 'message': 'You cannot delete your own account'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_activity_log(request=request, action='delete', entity_type='User',
                            entity_id=user.id, entity_name=user.username)
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Store settings
@api_view(['GET'])
@permission_classes([AllowAny])
def public_settings(request):
    """Settings the storefront needs before login"""
    store_settings = StoreSettings.load()
    return Response({
        'guest_can_view_products': store_settings.guest_can_view_products,
        'min_order_amount': store_settings.min_order_amount,
        'free_shipping_threshold': store_settings.free_shipping_threshold,
        'shipping_rules': store_settings.shipping_rules,
    })


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([HasAdminPermission('settings_management')])
def store_settings_detail(request):
    """Retrieve or update the store settings"""
    store_settings = StoreSettings.load()
    if request.method == 'GET':
        return Response(StoreSettingsSerializer(store_settings).data)

    serializer = StoreSettingsSerializer(store_settings, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        create_activity_log(request=request, action='settings_update', entity_type='StoreSettings',
                            entity_id=store_settings.pk, details={'fields': sorted(request.data.keys())})
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Activity log (read-only)
@api_view(['GET'])
@permission_classes([HasAdminPermission('activity_log_view')])
def activity_log_list(request):
    """List activity log entries with filtering"""
    queryset = ActivityLog.objects.select_related('user')

    action_filter = request.query_params.get('action')
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    entity_filter = request.query_params.get('entity_type')
    if entity_filter:
        queryset = queryset.filter(entity_type=entity_filter)

    user_filter = request.query_params.get('user')
    if user_filter:
        queryset = queryset.filter(user_id=user_filter)

    date_from = request.query_params.get('date_from')
    date_to = request.query_params.get('date_to')
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')
    return Response(paginated_response_data(request, queryset, ActivityLogSerializer))


@api_view(['GET'])
@permission_classes([HasAdminPermission('activity_log_view')])
def activity_log_detail(request, pk):
    """Retrieve an activity log entry"""
    log = get_object_or_404(ActivityLog, pk=pk)
    return Response(ActivityLogSerializer(log).data)
