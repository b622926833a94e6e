"""
Management command to populate the database with demo data.
"""
import random
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from dispatch.models import (
    Conversation, Facility, FacilityInvoice, Invoice, ManagedClient, Message, Trip, User,
)

STREETS = ['Main St', 'Oak Ave', 'High St', 'Lake Rd', 'Park Blvd', 'Cedar Ln']
CITY = 'Columbus, OH'


def _address() -> str:
    return f"{random.randint(100, 9999)} {random.choice(STREETS)}, {CITY}"


class Command(BaseCommand):
    help = 'Populate database with demo data'

    def add_arguments(self, parser):
        parser.add_argument('--trips', type=int, default=40)
        parser.add_argument('--seed', type=int, default=None)

    @transaction.atomic
    def handle(self, *args, **options):
        if options['seed'] is not None:
            random.seed(options['seed'])
        self.stdout.write('Creating demo data...')
        password = make_password('dispatch-demo-1')

        facilities = self.create_facilities()
        drivers = self.create_users(User.ROLE_DRIVER, 5, password)
        clients = self.create_users(User.ROLE_CLIENT, 8, password)
        managed = self.create_managed_clients(facilities)
        trips = self.create_trips(options['trips'], clients, managed, drivers)
        self.create_invoices(trips)
        self.create_facility_invoices(facilities)
        self.create_conversations(facilities)

        self.stdout.write(self.style.SUCCESS(
            f"Done: {len(facilities)} facilities, {len(drivers)} drivers, {len(clients)} clients, {len(trips)} trips"
        ))

    def create_facilities(self):
        names = ['Riverside Care Home', 'St. Mary Dialysis Center', 'Maple Grove Assisted Living']
        out = []
        for name in names:
            f, _ = Facility.objects.get_or_create(name=name, defaults={
                'address': _address(),
                'phone_number': f"614-555-{random.randint(1000, 9999)}",
                'contact_email': f"{name.split()[0].lower()}@example.com",
                'billing_email': f"billing.{name.split()[0].lower()}@example.com",
                'facility_type': random.choice(['hospital', 'nursing_home', 'dialysis']),
            })
            out.append(f)
        return out

    def create_users(self, role, n, password):
        out = []
        for i in range(1, n + 1):
            username = f"demo_{role}{i}"
            u, _ = User.objects.get_or_create(username=username, defaults={
                'role': role,
                'email': f"{username}@example.com",
                'first_name': role.capitalize(),
                'last_name': str(i),
                'phone_number': f"614-555-{random.randint(1000, 9999)}",
                'password': password,
                'vehicle_model': 'Ford Transit' if role == User.ROLE_DRIVER else '',
            })
            out.append(u)
        return out

    def create_managed_clients(self, facilities):
        out = []
        for f in facilities:
            for i in range(1, 4):
                c, _ = ManagedClient.objects.get_or_create(facility=f, first_name=f"Resident{i}", defaults={
                    'last_name': f.name.split()[0],
                    'phone_number': f"614-555-{random.randint(1000, 9999)}",
                    'accessibility_needs': random.choice(['', 'wheelchair', 'walker']),
                })
                out.append(c)
        return out

    def create_trips(self, n, clients, managed, drivers):
        now = timezone.now()
        statuses = [Trip.STATUS_PENDING, Trip.STATUS_UPCOMING, Trip.STATUS_COMPLETED, Trip.STATUS_CANCELLED]
        out = []
        for _ in range(n):
            facility_trip = random.random() < 0.4
            st = random.choice(statuses)
            trip = Trip(
                pickup_address=_address(),
                destination_address=_address(),
                pickup_time=now + timedelta(hours=random.randint(-72, 96)),
                status=st,
                price=Decimal(random.randint(3000, 12000)) / 100,
                wheelchair_type=random.choice(['', 'manual', 'power']),
            )
            if facility_trip:
                trip.managed_client = random.choice(managed)
                trip.facility = trip.managed_client.facility
                trip.payment_status = Trip.PAYMENT_NOT_APPLICABLE
            else:
                trip.user = random.choice(clients)
                trip.payment_method_id = f"pm_demo_{random.randint(1000, 9999)}"
            if st == Trip.STATUS_COMPLETED:
                trip.driver = random.choice(drivers)
                trip.driver_name = trip.driver.full_name
                trip.completed_at = trip.pickup_time + timedelta(hours=1)
            trip.save()
            out.append(trip)
        return out

    def create_invoices(self, trips):
        today = timezone.localdate()
        for i, t in enumerate(x for x in trips if x.status == Trip.STATUS_COMPLETED and x.user_id):
            Invoice.objects.get_or_create(invoice_number=f"DISP-{today:%Y%m%d}-{i:04d}", defaults={
                'user': t.user,
                'trip': t,
                'amount': t.price,
                'status': random.choice([Invoice.STATUS_PENDING, Invoice.STATUS_PAID]),
                'due_date': timezone.now() + timedelta(days=30),
                'description': f"Transportation service: {t.pickup_address} → {t.destination_address}",
            })

    def create_facility_invoices(self, facilities):
        month = f"{timezone.localdate():%Y-%m}"
        for f in facilities:
            FacilityInvoice.objects.get_or_create(facility=f, month=month, defaults={
                'invoice_number': f"FAC-{f.id}-{month}",
                'total_amount': Decimal(random.randint(50000, 300000)) / 100,
                'payment_status': random.choice([FacilityInvoice.UNPAID, FacilityInvoice.CHECK_WILL_MAIL]),
            })

    def create_conversations(self, facilities):
        for f in facilities:
            conv, created = Conversation.objects.get_or_create(facility=f, subject='Scheduling')
            if created:
                Message.objects.create(conversation=conv, sender=None, sender_role='facility',
                                       content='Can we move tomorrow\'s pickup to 9:30?')
                conv.last_message_at = timezone.now()
                conv.save(update_fields=['last_message_at'])
