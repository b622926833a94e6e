"""
Invoices, facility invoice review and check payment verification.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from dispatch.permissions import IsBillingStaff, IsDispatcher
from dispatch.serializers.billing import (
    CheckVerificationSerializer,
    FacilityInvoiceReviewSerializer,
    InvoiceCreateSerializer,
    InvoiceListQuerySerializer,
    InvoiceUpdateSerializer,
    VerifyCheckPaymentSerializer,
)
from dispatch.services import check_payments, invoices


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsDispatcher])
def invoice_list(request):
    if request.method == 'GET':
        q = InvoiceListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        st = q.validated_data.get('status')
        return Response({'success': True, **invoices.list_invoices(status=None if st == 'all' else st)})
    s = InvoiceCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    inv = invoices.create_invoice(
        request.user,
        user=vd['user_id'],
        amount=vd['amount'],
        trip=vd.get('trip_id'),
        description=vd.get('description'),
        notes=vd.get('notes', ''),
        due_days=vd['due_days'],
    )
    return Response({'success': True, 'invoice': invoices.serialize_invoice(inv)}, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsDispatcher])
def invoice_detail(request, invoice_id):
    if request.method == 'DELETE':
        invoices.delete_invoice(request.user, invoice_id)
        return Response({'success': True, 'message': 'Invoice deleted successfully'})
    if request.method == 'PUT':
        s = InvoiceUpdateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        invoices.update_invoice(request.user, invoice_id, s.validated_data)
    return Response({'success': True, 'invoice': invoices.serialize_invoice(invoices.get_invoice(invoice_id))})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsDispatcher])
def facility_invoices(request):
    """List facility invoices (``?status=``) or approve/reject one awaiting dispatcher approval."""
    if request.method == 'GET':
        q = InvoiceListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        return Response({'success': True, **invoices.list_facility_invoices(status=q.validated_data.get('status'))})
    s = FacilityInvoiceReviewSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    result = invoices.review_facility_invoice(request.user, vd['invoice_id'], vd['action'], vd.get('notes'))
    return Response({'success': True, **result})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsBillingStaff])
def verify_check_payment(request):
    s = VerifyCheckPaymentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    return Response(check_payments.verify_check_payment(request.user, s.validated_data['invoice_id'],
                                                        s.validated_data['action']))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsBillingStaff])
def check_payment_verify(request):
    s = CheckVerificationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    return Response(check_payments.apply_verification(
        request.user,
        facility_id=vd['facility_id'],
        month=vd['month'],
        invoice_id=vd['invoice_id'],
        action=vd['verification_action'],
        notes=vd.get('verification_notes'),
    ))
