import logging
import smtplib

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils import timezone

from dispatch.services.assignment_tokens import make_assignment_token

logger = logging.getLogger('dispatch.email')


def _client_contact(trip) -> tuple[str, str]:
    if trip.user_id:
        return trip.user.full_name or 'Name not provided', trip.user.phone_number or 'Phone not provided'
    if trip.managed_client_id:
        mc = trip.managed_client
        return mc.full_name or 'Name not provided', mc.phone_number or 'Phone not provided'
    return 'Name not provided', 'Phone not provided'


def send_driver_assignment_email(driver, trip) -> bool:
    """Email the driver their new assignment with accept/decline links.

    Returns False (and logs) when the driver has no address or SMTP fails;
    the assignment itself never depends on the email.
    """
    if not driver.email:
        logger.warning('driver %s has no email; assignment email for trip %s skipped', driver.id, trip.id)
        return False
    token = make_assignment_token(trip.id, driver.id)
    client_name, client_phone = _client_contact(trip)
    context = {
        'driver': driver,
        'trip': trip,
        'pickup_time': timezone.localtime(trip.pickup_time),
        'client_name': client_name,
        'client_phone': client_phone,
        'trip_url': f"{settings.DRIVER_APP_URL}/trips/{trip.id}",
        'accept_url': f"{settings.DRIVER_APP_URL}/trips/respond?token={token}&action=accept",
        'decline_url': f"{settings.DRIVER_APP_URL}/trips/respond?token={token}&action=reject",
    }
    subject = f"{'URGENT: ' if trip.is_emergency else ''}New trip assignment - {context['pickup_time']:%b %d, %I:%M %p}"
    text = render_to_string('dispatch/email/driver_assignment.txt', context)
    html = render_to_string('dispatch/email/driver_assignment.html', context)
    msg = EmailMultiAlternatives(subject, text, settings.DEFAULT_FROM_EMAIL, [driver.email])
    msg.attach_alternative(html, 'text/html')
    try:
        msg.send()
    except (smtplib.SMTPException, OSError):
        logger.exception('assignment email for trip %s to driver %s failed', trip.id, driver.id)
        return False
    logger.info('assignment email for trip %s sent to driver %s', trip.id, driver.id)
    return True
