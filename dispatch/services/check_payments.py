"""
Verification of mailed checks for facility monthly invoices.

Facilities report a check as mailed from their own app. Dispatch then
walks the invoice through receipt and verification here. Every step leaves
a note on the invoice and a row in the facility's payment history.
"""
import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from dispatch.exceptions import InvalidStatusTransition
from dispatch.models import FacilityInvoice as FI, FacilityInvoicePayment
from dispatch.services.audit import log_action

logger = logging.getLogger('dispatch.billing')

NOTE_PREFIX = '[DISPATCHER VERIFICATION]'
VERIFY_ACTIONS = ('received', 'has_issues')
VERIFICATION_ACTIONS = (
    'mark_received', 'mark_verified', 'mark_issues', 'request_new_check', 'check_received', 'mark_not_received',
)
VERIFIABLE_STATUSES = (FI.CHECK_BEING_VERIFIED, FI.CHECK_IN_TRANSIT, FI.CHECK_ALREADY_SENT)


def _long_date(now) -> str:
    now = timezone.localtime(now)
    return f"{now:%B} {now.day}, {now.year}"


def serialize_facility_invoice(inv: FI) -> dict:
    return {
        'id': inv.id,
        'facility_id': inv.facility_id,
        'month': inv.month,
        'invoice_number': inv.invoice_number,
        'total_amount': str(inv.total_amount),
        'payment_status': inv.payment_status,
        'payment_notes': inv.payment_notes,
        'payment_date': inv.payment_date.isoformat() if inv.payment_date else None,
        'verified_by': inv.verified_by_id,
        'verified_at': inv.verified_at.isoformat() if inv.verified_at else None,
        'verification_date': inv.verification_date.isoformat() if inv.verification_date else None,
    }


def _get_locked(invoice_id) -> FI:
    try:
        return FI.objects.select_for_update().get(id=invoice_id)
    except (FI.DoesNotExist, ValueError):
        raise NotFound('Invoice not found')


# ---------------------------------------------------------------------
# One-step verification used by the payment-verification screen
# ---------------------------------------------------------------------
@transaction.atomic
def verify_check_payment(user, invoice_id, action: str) -> dict:
    if action not in VERIFY_ACTIONS:
        raise ValidationError('Invalid action')
    inv = _get_locked(invoice_id)
    now = timezone.now()
    if action == 'received':
        new_status = FI.CHECK_VERIFIED
        payment_status = FacilityInvoicePayment.STATUS_COMPLETED
        note = (f"Check payment verified and deposited by dispatcher {user.email} on {_long_date(now)}. "
                "Invoice marked as FULLY PAID.")
        message = 'Check payment successfully received, deposited, and verified. Payment is now FULLY PAID.'
        inv.payment_date = now
    else:
        new_status = FI.CHECK_HAS_ISSUES
        payment_status = FacilityInvoicePayment.STATUS_HAS_ISSUES
        note = (f"Check payment marked as having issues by dispatcher {user.email} on {_long_date(now)}. "
                "Facility needs to contact billing department.")
        message = 'Check payment marked as having issues. Facility will be notified.'
    inv.payment_status = new_status
    inv.payment_notes = note
    inv.verified_by = user
    inv.verified_at = now
    inv.save(update_fields=['payment_status', 'payment_notes', 'payment_date', 'verified_by', 'verified_at',
                            'updated_at'])
    FacilityInvoicePayment.objects.filter(
        facility_id=inv.facility_id, month=inv.month, payment_method='check'
    ).update(status=payment_status, payment_note=note, verified_by=user, verified_at=now)
    log_action(user=user, action='check_payment_verify', object_type='facility_invoice', object_id=inv.id,
               detail={'action': action, 'status': new_status})
    return {'success': True, 'message': message, 'new_status': new_status}


# ---------------------------------------------------------------------
# Multi-step check workflow
# ---------------------------------------------------------------------
def next_check_status(current: str, action: str, notes: Optional[str], when: str) -> tuple[str, str]:
    """Return ``(new_status, audit_note)`` for a verification action or raise on an invalid step."""
    if action == 'mark_received':
        if current == FI.CHECK_WILL_MAIL:
            return FI.CHECK_IN_TRANSIT, (
                f"Check payment marked as received by dispatcher on {when}. Check is now in transit for verification."
            )
        if current == FI.CHECK_IN_TRANSIT:
            return FI.CHECK_BEING_VERIFIED, (
                f"Check payment received and marked for verification by dispatcher on {when}. "
                "Beginning verification process."
            )
        raise InvalidStatusTransition('Invalid status transition for mark_received action')
    if action == 'mark_verified':
        if current not in VERIFIABLE_STATUSES:
            raise InvalidStatusTransition('Check must be in verification status to mark as verified')
        if current == FI.CHECK_ALREADY_SENT:
            return FI.CHECK_VERIFIED, (
                f"Check payment verified by dispatcher on {when}. "
                "Facility-reported sent check confirmed and payment process completed successfully."
            )
        return FI.CHECK_VERIFIED, (
            f"Check payment verified and deposited by dispatcher on {when}. Payment process completed successfully."
        )
    if action == 'mark_issues':
        return FI.CHECK_HAS_ISSUES, (
            f"Check payment marked as having issues by dispatcher on {when}. "
            f"Issues: {notes or 'No specific issues noted'}."
        )
    if action == 'request_new_check':
        return FI.CHECK_REPLACEMENT_REQUESTED, (
            f"Replacement check requested by dispatcher on {when}. Reason: {notes or 'No specific reason noted'}."
        )
    if action == 'check_received':
        return FI.CHECK_RECEIVED, (
            f"Check payment received by dispatcher on {when}. Check is now ready for verification processing."
        )
    if action == 'mark_not_received':
        return FI.CHECK_NOT_RECEIVED, (
            f"Check payment marked as not received by dispatcher on {when}. "
            "Facility will be contacted to resolve this issue."
        )
    raise ValidationError('Invalid verification action')


@transaction.atomic
def apply_verification(user, *, facility_id, month: str, invoice_id, action: str, notes: Optional[str] = None) -> dict:
    inv = _get_locked(invoice_id)
    if str(inv.facility_id) != str(facility_id) or inv.month != month:
        raise ValidationError('Invoice does not match facility and month')
    now = timezone.now()
    previous = inv.payment_status
    new_status, note = next_check_status(previous, action, notes, _long_date(now))
    if notes:
        note += f" Dispatcher notes: {notes}"

    line = f"{NOTE_PREFIX} {note}"
    inv.payment_status = new_status
    inv.payment_notes = f"{inv.payment_notes}\n\n{line}" if inv.payment_notes else line
    inv.verified_by = user
    inv.verification_date = now if action == 'mark_verified' else None
    if action == 'mark_verified':
        inv.payment_date = now
    inv.save(update_fields=['payment_status', 'payment_notes', 'verified_by', 'verification_date', 'payment_date',
                            'updated_at'])

    FacilityInvoicePayment.objects.create(
        facility_id=inv.facility_id,
        month=month,
        amount=inv.total_amount,
        payment_method='check_verification',
        status=(FacilityInvoicePayment.STATUS_COMPLETED if action == 'mark_verified'
                else FacilityInvoicePayment.STATUS_PENDING_VERIFICATION),
        payment_note=note,
        payment_date=now,
        verification_action=action,
        verification_notes=notes or '',
        verified_by=user,
        verified_at=now if action == 'mark_verified' else None,
    )
    log_action(user=user, action='check_payment_step', object_type='facility_invoice', object_id=inv.id,
               detail={'action': action, 'from': previous, 'to': new_status})
    logger.info('facility invoice %s: %s -> %s', inv.id, previous, new_status)
    return {
        'success': True,
        'message': f'Check payment status updated to {new_status}',
        'new_status': new_status,
        'audit_note': note,
        'invoice': serialize_facility_invoice(inv),
    }
