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
from .models import CompanySettings, AuditLog
from .serializers import (
    UserSerializer, UserCreateSerializer, AdminUserCreateSerializer,
    CompanySettingsSerializer, AuditLogSerializer
)
from .utils import create_audit_log, is_admin_user, is_engineer_user, is_office_user, engineer_scope

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['display_name'] = user.display_name
        token['groups'] = list(user.groups.values_list('name', flat=True))
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Custom token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """Self-registration; the account stays inactive until an admin approves it and assigns a role"""
    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        create_audit_log(
            request=request,
            action='create',
            model_name='User',
            object_id=str(user.pk),
            object_name=user.username,
            changes={'is_active': False},
            user=user,
        )
        return Response({
            'user': UserSerializer(user).data,
            'detail': 'Account created. An administrator must approve it before you can sign in.',
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def user_list_create(request):
    """List all users or create a new user"""
    if not is_admin_user(request.user):
        return Response({'error': 'Only Admin users can manage users'}, status=status.HTTP_403_FORBIDDEN)
    if request.method == 'GET':
        users = User.objects.all().order_by('username')
        serializer = UserSerializer(users, many=True)
        return Response(serializer.data)
    else:
        serializer = AdminUserCreateSerializer(data=request.data)
        if serializer.is_valid():
            user = serializer.save()
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    if not is_admin_user(request.user):
        return Response({'error': 'Only Admin users can manage users'}, status=status.HTTP_403_FORBIDDEN)
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        serializer = UserSerializer(user)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with groups and access flags"""
    user = request.user
    user_data = UserSerializer(user).data
    user_data['groups'] = list(user.groups.values_list('name', flat=True))

    is_admin = is_admin_user(user)
    user_data['is_admin'] = is_admin
    user_data['is_engineer'] = is_engineer_user(user)
    user_data['is_office'] = is_office_user(user)
    user_data['engineer_scope'] = engineer_scope(user)

    # Engineers work the schedule; configuration screens are for admins
    user_data['can_access_dashboard'] = True
    user_data['can_access_reports'] = user_data['is_office']
    user_data['can_access_settings'] = is_admin
    user_data['can_access_team'] = is_admin
    user_data['can_access_billing'] = user_data['is_office']
    return Response(user_data)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def company_settings(request):
    """Retrieve or update the company settings"""
    settings_obj = CompanySettings.load()

    if request.method == 'GET':
        return Response(CompanySettingsSerializer(settings_obj).data)

    if not is_admin_user(request.user):
        return Response({'error': 'Only Admin users can change settings'}, status=status.HTTP_403_FORBIDDEN)

    serializer = CompanySettingsSerializer(settings_obj, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='CompanySettings',
            object_id=str(settings_obj.pk),
            object_name=settings_obj.company_name,
            changes={'fields': sorted(request.data.keys())}
        )
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List all audit logs with filtering"""
    queryset = AuditLog.objects.select_related('user').all()

    if not is_admin_user(request.user):
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    reference = request.query_params.get('reference', None)
    if reference:
        queryset = queryset.filter(object_reference__icontains=reference)

    date_from = request.query_params.get('date_from', None)
    date_to = request.query_params.get('date_to', None)
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')[:500]
    serializer = AuditLogSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not is_admin_user(request.user) and audit_log.user != request.user:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def global_search(request):
    """Global search across customers, jobs, documents, parts and engineers"""
    query = request.query_params.get('q', '').strip()

    if not query:
        return Response({
            'customers': [],
            'jobs': [],
            'invoices': [],
            'quotes': [],
            'statements': [],
            'inventory': [],
            'engineers': [],
        })

    from fieldservice.parties.models import Customer, Engineer
    from fieldservice.inventory.models import InventoryItem
    from fieldservice.jobs.models import Job
    from fieldservice.billing.models import Invoice, Quote, Statement
    from fieldservice.parties.serializers import CustomerSerializer, EngineerSerializer
    from fieldservice.inventory.serializers import InventoryItemSerializer
    from fieldservice.jobs.serializers import JobListSerializer
    from fieldservice.billing.serializers import InvoiceListSerializer, QuoteListSerializer, StatementSerializer
    from fieldservice.inventory.filters import InventoryItemFilter

    results = {}

    customers = Customer.objects.filter(
        Q(name__icontains=query) |
        Q(contact_person__icontains=query) |
        Q(email__icontains=query) |
        Q(phone__icontains=query)
    )[:20]
    results['customers'] = CustomerSerializer(customers, many=True).data

    jobs = Job.objects.select_related('customer').filter(
        Q(customer__name__icontains=query) |
        Q(service_type__icontains=query) |
        Q(engineer_name__icontains=query) |
        Q(notes__icontains=query)
    )
    if query.isdigit():
        jobs = Job.objects.select_related('customer').filter(Q(pk__in=jobs.values('pk')) | Q(job_number=int(query)))
    scope = engineer_scope(request.user)
    if scope:
        jobs = jobs.filter(engineer_name=scope)
    results['jobs'] = JobListSerializer(jobs.order_by('-created_at')[:20], many=True).data

    # Billing documents are for office users only
    results['invoices'] = []
    results['quotes'] = []
    results['statements'] = []
    if is_office_user(request.user):
        invoices = Invoice.objects.select_related('customer').filter(
            Q(invoice_number__icontains=query) |
            Q(customer__name__icontains=query) |
            Q(guest_name__icontains=query)
        )[:20]
        results['invoices'] = InvoiceListSerializer(invoices, many=True).data

        quotes = Quote.objects.select_related('customer').filter(
            Q(quote_number__icontains=query) |
            Q(customer__name__icontains=query) |
            Q(description__icontains=query)
        )[:20]
        results['quotes'] = QuoteListSerializer(quotes, many=True).data

        statements = Statement.objects.select_related('customer', 'job').filter(
            Q(statement_number__icontains=query) |
            Q(customer__name__icontains=query)
        )[:20]
        results['statements'] = StatementSerializer(statements, many=True).data

    inventory_filter = InventoryItemFilter({'search': query}, queryset=InventoryItem.objects.all())
    results['inventory'] = InventoryItemSerializer(inventory_filter.qs[:20], many=True).data

    engineers = Engineer.objects.filter(
        Q(name__icontains=query) |
        Q(email__icontains=query)
    )[:20]
    results['engineers'] = EngineerSerializer(engineers, many=True).data

    return Response(results)
