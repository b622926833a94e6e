import bleach
from django.db import transaction
from django.db.models import Count, Max, Q
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from dispatch.models import Conversation, Message
from dispatch.services import notifications
from dispatch.services.audit import log_action


def serialize_message(m: Message) -> dict:
    return {
        'id': m.id,
        'conversation_id': m.conversation_id,
        'sender_id': m.sender_id,
        'sender_role': m.sender_role,
        'sender_name': m.sender.full_name if m.sender_id else None,
        'content': m.content,
        'read': m.read,
        'created_at': m.created_at.isoformat(),
    }


def list_conversations() -> list[dict]:
    qs = (
        Conversation.objects.select_related('facility')
        .annotate(
            unread=Count('messages', filter=Q(messages__read=False, messages__sender_role='facility')),
            latest=Max('messages__created_at'),
        )
        .order_by('-last_message_at', '-created_at')
    )
    return [{
        'id': c.id,
        'facility_id': c.facility_id,
        'facility_name': c.facility.name,
        'subject': c.subject,
        'unread_count': c.unread,
        'last_message_at': (c.last_message_at or c.latest).isoformat() if (c.last_message_at or c.latest) else None,
    } for c in qs]


def get_conversation(conversation_id) -> Conversation:
    try:
        return Conversation.objects.select_related('facility').get(id=conversation_id)
    except (Conversation.DoesNotExist, ValueError):
        raise NotFound('Conversation not found')


def conversation_messages(conversation: Conversation) -> list[dict]:
    return [serialize_message(m) for m in conversation.messages.select_related('sender').order_by('created_at')]


@transaction.atomic
def reply(conversation: Conversation, sender, content: str) -> Message:
    """Post a dispatcher reply, mark the facility's messages read and notify the facility staff."""
    content = bleach.clean((content or '').strip(), tags=set(), strip=True).strip()
    if not content:
        raise ValidationError({'content': ['Message cannot be empty']})
    msg = Message.objects.create(conversation=conversation, sender=sender, sender_role='dispatcher', content=content)
    conversation.messages.filter(sender_role='facility', read=False).update(read=True)
    conversation.last_message_at = timezone.now()
    conversation.save(update_fields=['last_message_at'])
    log_action(user=sender, action='message_reply', object_type='conversation', object_id=conversation.id,
               detail={'messageId': msg.id})
    facility = conversation.facility
    transaction.on_commit(lambda: notifications.notify_facility(
        facility,
        title='New message from dispatch',
        body=notifications.truncate_preview(content),
        data={'type': 'message', 'conversationId': str(conversation.id)},
    ), robust=True)
    return msg
