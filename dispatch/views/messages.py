from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from dispatch.permissions import IsDispatcher
from dispatch.serializers.notifications import MessageReplySerializer
from dispatch.services import messages as message_service


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDispatcher])
def conversations(request):
    return Response({'success': True, 'conversations': message_service.list_conversations()})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsDispatcher])
def conversation_detail(request, conversation_id):
    conversation = message_service.get_conversation(conversation_id)
    if request.method == 'POST':
        s = MessageReplySerializer(data=request.data)
        s.is_valid(raise_exception=True)
        msg = message_service.reply(conversation, request.user, s.validated_data['content'])
        return Response({'success': True, 'message': message_service.serialize_message(msg)},
                        status=status.HTTP_201_CREATED)
    return Response({
        'success': True,
        'conversation': {
            'id': conversation.id,
            'facility_id': conversation.facility_id,
            'facility_name': conversation.facility.name,
            'subject': conversation.subject,
        },
        'messages': message_service.conversation_messages(conversation),
    })
