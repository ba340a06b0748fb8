# ==============================================================================
# SERVICIO DE MENSAJES
# ==============================================================================
# Tablón de la comunidad (cualquier socia escribe) y avisos oficiales de la
# junta (requieren manage_settings).
# ==============================================================================

from typing import List

from ..errors import NotFoundError, ValidationError
from ..models.entities import Member, SystemMessage, UserMessage, new_id
from ..models.state import ClubState
from .permission_service import PermissionService

MAX_MESSAGE_LENGTH = 2000


def _clean_content(content: str) -> str:
    content = (content or '').strip()
    if not content:
        raise ValidationError("El mensaje está vacío")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"El mensaje supera los {MAX_MESSAGE_LENGTH} caracteres")
    return content


class MessageService:

    def __init__(self, state: ClubState, permissions: PermissionService,
                 mirror=None, audit_service=None):
        self.state = state
        self.permissions = permissions
        self.mirror = mirror
        self.audit_service = audit_service

    def send_message(self, actor: Member, content: str) -> UserMessage:
        """Publica en el tablón. Basta con tener sesión."""
        if actor is None:
            raise ValidationError("Hace falta una socia para publicar")
        message = UserMessage(id=new_id('MSG'), sender_id=actor.id, content=_clean_content(content))
        with self.state.lock:
            self.state.user_messages.append(message)
        if self.mirror:
            self.mirror.save('userMessages', message)
        return message

    def mark_read(self, message_id: str) -> UserMessage:
        with self.state.lock:
            message = self.state.find('userMessages', message_id)
            if message is None:
                raise NotFoundError('Mensaje', message_id)
            changed = not message.is_read
            message.is_read = True
        if changed and self.mirror:
            self.mirror.save('userMessages', message)
        return message

    def list_messages(self) -> List[UserMessage]:
        """Mensajes del tablón en orden cronológico."""
        with self.state.lock:
            return sorted(self.state.user_messages, key=lambda m: m.timestamp)

    def unread_count(self) -> int:
        return sum(1 for m in self.state.user_messages if not m.is_read)

    # =========================================================================
    # AVISOS DE LA JUNTA
    # =========================================================================

    def post_announcement(self, actor: Member, title: str, content: str) -> SystemMessage:
        """Publica un aviso oficial (requiere manage_settings)."""
        self.permissions.require(actor, 'manage_settings')
        title = (title or '').strip()
        if not title:
            raise ValidationError("El aviso necesita un título")
        announcement = SystemMessage(
            id=new_id('SYS'),
            author_id=actor.id,
            title=title,
            content=_clean_content(content),
        )
        with self.state.lock:
            self.state.system_messages.append(announcement)
        if self.mirror:
            self.mirror.save('systemMessages', announcement)
        if self.audit_service:
            self.audit_service.log(
                self.audit_service.TYPE_SISTEMA, actor.id,
                f"Aviso publicado: {title} por {actor.id}", announcement.id
            )
        return announcement

    def list_announcements(self) -> List[SystemMessage]:
        """Avisos, el más reciente primero."""
        with self.state.lock:
            return sorted(self.state.system_messages, key=lambda m: m.timestamp, reverse=True)
