import logging
import secrets
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from dispatch.exceptions import InvalidStatusTransition
from dispatch.models import Invoice, Trip
from dispatch.services.audit import log_action

logger = logging.getLogger('dispatch.invoices')

DEFAULT_DUE_DAYS = 30
NUMBER_ATTEMPTS = 5


def _iso(dt):
    return dt.isoformat() if dt else None


def serialize_invoice(inv: Invoice) -> dict:
    data = {
        'id': inv.id,
        'invoice_number': inv.invoice_number,
        'user_id': inv.user_id,
        'facility_id': inv.facility_id,
        'trip_id': str(inv.trip_id) if inv.trip_id else None,
        'amount': str(inv.amount),
        'status': inv.status,
        'payment_status': inv.payment_status,
        'issue_date': _iso(inv.issue_date),
        'due_date': _iso(inv.due_date),
        'description': inv.description,
        'notes': inv.notes,
        'payment_date': _iso(inv.payment_date),
        'payment_method': inv.payment_method,
        'approved_by': inv.approved_by_id,
        'approved_at': _iso(inv.approved_at),
        'dispatcher_notes': inv.dispatcher_notes,
        'created_at': _iso(inv.created_at),
    }
    if inv.user_id:
        data['client'] = {'id': inv.user.id, 'first_name': inv.user.first_name, 'last_name': inv.user.last_name,
                          'email': inv.user.email, 'phone_number': inv.user.phone_number}
    if inv.facility_id:
        data['facility'] = {'id': inv.facility.id, 'name': inv.facility.name,
                            'contact_email': inv.facility.contact_email, 'phone_number': inv.facility.phone_number}
    if inv.trip_id:
        data['trip'] = {'id': str(inv.trip.id), 'pickup_address': inv.trip.pickup_address,
                        'destination_address': inv.trip.destination_address,
                        'pickup_time': _iso(inv.trip.pickup_time), 'status': inv.trip.status}
    return data


def _is_overdue(inv: Invoice, now) -> bool:
    if inv.status == Invoice.STATUS_OVERDUE:
        return True
    return inv.status == Invoice.STATUS_PENDING and inv.due_date is not None and inv.due_date < now


def list_invoices(*, status: Optional[str] = None) -> dict:
    qs = Invoice.objects.select_related('user', 'facility', 'trip').order_by('-created_at')
    if status:
        qs = qs.filter(status=status)
    invoices = list(qs)
    now = timezone.now()
    summary = {
        'total_invoices': len(invoices),
        'total_amount': str(sum((i.amount for i in invoices), Decimal('0'))),
        'pending_count': sum(1 for i in invoices if i.status == Invoice.STATUS_PENDING),
        'paid_count': sum(1 for i in invoices if i.status == Invoice.STATUS_PAID),
        'overdue_count': sum(1 for i in invoices if _is_overdue(i, now)),
    }
    return {'invoices': [serialize_invoice(i) for i in invoices], 'summary': summary}


def generate_invoice_number(today=None) -> str:
    today = today or timezone.localdate()
    return f"DISP-{today:%Y%m%d}-{secrets.randbelow(10000):04d}"


def get_invoice(invoice_id, *, lock: bool = False) -> Invoice:
    qs = Invoice.objects.select_for_update() if lock else Invoice.objects.select_related('user', 'facility', 'trip')
    try:
        return qs.get(id=invoice_id)
    except (Invoice.DoesNotExist, ValueError):
        raise NotFound('Invoice not found')


def create_invoice(dispatcher, *, user, amount: Decimal, trip: Optional[Trip] = None,
                   description: Optional[str] = None, notes: str = '', due_days: int = DEFAULT_DUE_DAYS) -> Invoice:
    if not description:
        if trip is not None:
            description = f"Transportation service: {trip.pickup_address} → {trip.destination_address}"
        else:
            description = 'Transportation service'
    now = timezone.now()
    # the 4-digit suffix is random, so retry on the rare collision
    for attempt in range(NUMBER_ATTEMPTS):
        try:
            with transaction.atomic():
                inv = Invoice.objects.create(
                    invoice_number=generate_invoice_number(),
                    user=user,
                    trip=trip,
                    facility=trip.facility if trip is not None else None,
                    amount=amount,
                    status=Invoice.STATUS_PENDING,
                    issue_date=now,
                    due_date=now + timedelta(days=due_days),
                    description=description,
                    notes=notes or '',
                )
            break
        except IntegrityError:
            if attempt == NUMBER_ATTEMPTS - 1:
                raise
            logger.warning('invoice number collision, retrying')
    log_action(user=dispatcher, action='invoice_create', object_type='invoice', object_id=inv.id,
               detail={'number': inv.invoice_number, 'amount': str(amount)})
    return get_invoice(inv.id)


def update_invoice(dispatcher, invoice_id, data: dict) -> Invoice:
    inv = get_invoice(invoice_id)
    status = data.get('status')
    if status and status not in Invoice.EDITABLE_STATUSES:
        raise ValidationError({'status': ['Invalid status']})
    changed = []
    if status:
        inv.status = status
        changed.append('status')
    for f in ('payment_date', 'payment_method'):
        if data.get(f):
            setattr(inv, f, data[f])
            changed.append(f)
    if 'notes' in data:
        inv.notes = data['notes'] or ''
        changed.append('notes')
    if changed:
        inv.save(update_fields=changed + ['updated_at'])
        log_action(user=dispatcher, action='invoice_update', object_type='invoice', object_id=inv.id,
                   detail={'fields': changed, 'status': inv.status})
    return inv


def delete_invoice(dispatcher, invoice_id) -> None:
    inv = get_invoice(invoice_id)
    number = inv.invoice_number
    inv.delete()
    log_action(user=dispatcher, action='invoice_delete', object_type='invoice', object_id=invoice_id,
               detail={'number': number})


def mark_overdue_invoices(now=None) -> int:
    now = now or timezone.now()
    n = Invoice.objects.filter(status=Invoice.STATUS_PENDING, due_date__lt=now).update(
        status=Invoice.STATUS_OVERDUE, updated_at=now
    )
    if n:
        logger.info('marked %d invoices overdue', n)
    return n


# ---------------------------------------------------------------------
# Facility invoices awaiting dispatcher approval
# ---------------------------------------------------------------------
def list_facility_invoices(*, status: Optional[str] = None) -> dict:
    qs = Invoice.objects.filter(facility__isnull=False).select_related('user', 'facility', 'trip').order_by('-created_at')
    if status and status != 'all':
        qs = qs.filter(status=status)
    invoices = list(qs)
    summary = {
        'total_invoices': len(invoices),
        'total_amount': str(sum((i.amount for i in invoices), Decimal('0'))),
        'pending_approval': sum(1 for i in invoices if i.status == Invoice.STATUS_PENDING_APPROVAL),
        'approved': sum(1 for i in invoices if i.status == Invoice.STATUS_APPROVED),
        'sent': sum(1 for i in invoices if i.status == Invoice.STATUS_SENT),
    }
    return {'invoices': [serialize_invoice(i) for i in invoices], 'summary': summary}


def review_facility_invoice(dispatcher, invoice_id, action: str, notes: Optional[str] = None) -> dict:
    if action not in ('approve', 'reject'):
        raise ValidationError('Invalid action. Must be approve or reject')
    with transaction.atomic():
        inv = get_invoice(invoice_id, lock=True)
        if inv.facility_id is None:
            raise NotFound('Invoice not found')
        if inv.status != Invoice.STATUS_PENDING_APPROVAL:
            raise InvalidStatusTransition('Invoice is not pending approval')
        if action == 'approve':
            inv.status, inv.payment_status = Invoice.STATUS_APPROVED, 'paid'
        else:
            inv.status, inv.payment_status = Invoice.STATUS_SENT, 'pending'
        inv.approved_by = dispatcher
        inv.approved_at = timezone.now()
        inv.dispatcher_notes = notes or ''
        inv.save(update_fields=['status', 'payment_status', 'approved_by', 'approved_at', 'dispatcher_notes',
                                'updated_at'])
        log_action(user=dispatcher, action=f'facility_invoice_{action}', object_type='invoice', object_id=inv.id)
    return {
        'invoice': serialize_invoice(get_invoice(inv.id)),
        'message': f"Invoice {action}d successfully by {dispatcher.full_name}",
    }
