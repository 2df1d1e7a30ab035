import logging
from typing import Callable, Optional
from pydantic import ValidationError
from .storage import InMemoryStorage
from .cache import RedisCache
from .errors import InvalidArgument, NotFound
from .models import Chat, Message, User, utcnow
from chatrelay.protocol.types import DIRECT_CHAT_NAME

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ('username', 'email', 'full_name', 'avatar')


class ChatManager:
    """Chat directory: direct-chat lookup, chat listing and group membership.

    Operations are synchronous and must be called from the event loop thread;
    find-or-create relies on that for atomicity.
    """

    def __init__(self, storage: InMemoryStorage, cache: Optional[RedisCache] = None,
                 clock: Callable = utcnow):
        self.storage = storage
        self.cache = cache
        self.clock = clock

    def _get_chat(self, chat_id: str) -> Chat:
        chat = None
        if self.cache:
            chat = self.cache.get_chat(chat_id)
        if chat is None:
            chat = self.storage.chats.get(chat_id)
        if chat is None:
            raise NotFound("Chat Not Found")
        return chat

    def _get_group(self, chat_id: str) -> Chat:
        chat = self._get_chat(chat_id)
        if not chat.is_group:
            raise InvalidArgument("Chat is not a group chat")
        return chat

    def _save_chat(self, chat: Chat, touch: bool = True):
        if touch:
            chat.updated_at = self.clock()
        # keep both places in sync
        self.storage.save_chat(chat)
        if self.cache:
            self.cache.store_chat(chat)

    def _is_member(self, chat: Chat, user_id: str) -> bool:
        if self.cache:
            return self.cache.is_member(chat.id, user_id)
        return user_id in chat.members

    # profiles

    def upsert_profile(self, profile: dict) -> User | None:
        """Create or refresh a user profile from a client-supplied user object.

        Only public fields are taken; a ``password`` in the object is ignored.
        """
        uid = profile.get('id')
        if uid is None or uid == '':
            return None
        uid = str(uid)
        fields = {k: profile[k] for k in PROFILE_FIELDS if profile.get(k)}

        existing = self.storage.users.get(uid)
        data = existing.model_dump() if existing else {'id': uid, 'username': uid}
        data.update(fields)
        try:
            user = User.model_validate(data)
        except ValidationError as e:
            logger.warning("Ignoring profile for %s: %s", uid, e.errors()[0]['msg'])
            return None
        return self.storage.add_user(user)

    # direct chats

    def get_or_create_direct_chat(self, requester_id: str, other_user_id: str | None) -> dict:
        if not other_user_id:
            raise InvalidArgument("No User Exists!")
        if other_user_id == requester_id:
            raise InvalidArgument("Cannot start a chat with yourself")

        pair = {requester_id, other_user_id}
        for chat in self.storage.find_chats(requester_id, is_group=False):
            if set(chat.members) == pair:
                return self.populate(chat)

        now = self.clock()
        chat = Chat(
            name=DIRECT_CHAT_NAME,
            is_group=False,
            members=[requester_id, other_user_id],
            created_at=now,
            updated_at=now,
        )
        self.storage.create_chat(chat)
        if self.cache:
            self.cache.store_chat(chat)
        logger.info("Created direct chat %s between %s and %s", chat.id, requester_id, other_user_id)
        return self.populate(chat)

    def list_chats(self, user_id: str) -> list[dict]:
        chats = sorted(self.storage.find_chats(user_id), key=lambda c: c.updated_at, reverse=True)
        return [self.populate(c) for c in chats]

    # groups

    def create_group(self, creator_id: str, name: str | None, member_ids: list | None) -> dict:
        if not name or not name.strip() or member_ids is None:
            raise InvalidArgument("Please fill all the fields")

        members = []
        for uid in member_ids:
            if uid and uid != creator_id and uid not in members:
                members.append(uid)
        if len(members) < 2:
            raise InvalidArgument("More than 2 users are required to form a group chat")
        members.append(creator_id)

        now = self.clock()
        chat = Chat(
            name=name.strip(),
            is_group=True,
            members=members,
            admin=creator_id,
            created_at=now,
            updated_at=now,
        )
        self.storage.create_chat(chat)
        if self.cache:
            self.cache.store_chat(chat)
        logger.info("Group %r (%s) created by %s with %d members", chat.name, chat.id, creator_id, len(members))
        return self.populate(chat)

    def rename_group(self, chat_id: str, new_name: str | None) -> dict:
        chat = self._get_group(chat_id)
        if not new_name or not new_name.strip():
            raise InvalidArgument("Group name is required")
        chat.name = new_name.strip()
        self._save_chat(chat)
        return self.populate(chat)

    def add_member(self, chat_id: str, user_id: str) -> dict:
        chat = self._get_group(chat_id)
        # already a member: no-op
        if user_id not in chat.members:
            chat.members.append(user_id)
            self._save_chat(chat)
            logger.info("Added %s to group %s", user_id, chat_id)
        return self.populate(chat)

    def remove_member(self, chat_id: str, user_id: str) -> dict:
        chat = self._get_group(chat_id)
        # not a member: no-op
        if user_id in chat.members:
            chat.members.remove(user_id)
            self._save_chat(chat)
            logger.info("Removed %s from group %s", user_id, chat_id)
        return self.populate(chat)

    # messages

    def record_message(self, chat_id: str, sender_id: str, content: str | None) -> dict:
        chat = self._get_chat(chat_id)
        if not content or not content.strip():
            raise InvalidArgument("Message content is required")
        if not self._is_member(chat, sender_id):
            raise InvalidArgument("Sender is not a member of this chat")

        try:
            msg = Message(chat=chat.id, sender=sender_id, content=content, created_at=self.clock())
        except ValidationError as e:
            raise InvalidArgument(f"Invalid message: {e.errors()[0]['msg']}") from e
        self.storage.add_message(msg)
        chat.latest_message = msg.id
        chat.updated_at = msg.created_at
        self._save_chat(chat, touch=False)
        return self.populate_message(msg, chat)

    def list_messages(self, chat_id: str) -> list[dict]:
        chat = self._get_chat(chat_id)
        return [self.populate_message(m, chat) for m in self.storage.chat_messages(chat.id)]

    # views

    def _user(self, user_id: str | None) -> dict | None:
        if user_id is None:
            return None
        user = self.storage.users.get(user_id)
        return user.public() if user else {'id': user_id}

    def populate_message(self, msg: Message, chat: Chat | None = None) -> dict:
        d = msg.model_dump(mode='json')
        d['sender'] = self._user(msg.sender)
        if chat is not None:
            d['chat'] = {
                'id': chat.id,
                'name': chat.name,
                'is_group': chat.is_group,
                'members': [self._user(uid) for uid in chat.members],
            }
        return d

    def populate(self, chat: Chat) -> dict:
        d = chat.model_dump(mode='json')
        d['members'] = [self._user(uid) for uid in chat.members]
        d['admin'] = self._user(chat.admin)
        latest = self.storage.messages.get(chat.latest_message) if chat.latest_message else None
        d['latest_message'] = self.populate_message(latest) if latest else None
        return d
