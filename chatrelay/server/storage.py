from .models import Chat, Message, User


class InMemoryStorage:
    def __init__(self):
        self.users = {}     # user_id: User
        self.chats = {}     # chat_id: Chat
        self.messages = {}  # message_id: Message

    def add_user(self, user: User) -> User:
        self.users[user.id] = user
        return user

    def create_chat(self, chat: Chat) -> Chat:
        self.chats[chat.id] = chat
        return chat

    def save_chat(self, chat: Chat):
        self.chats[chat.id] = chat

    def find_chats(self, user_id: str, is_group: bool | None = None) -> list[Chat]:
        return [
            c for c in self.chats.values()
            if user_id in c.members and (is_group is None or c.is_group == is_group)
        ]

    def add_message(self, message: Message) -> Message:
        self.messages[message.id] = message
        return message

    def chat_messages(self, chat_id: str) -> list[Message]:
        msgs = [m for m in self.messages.values() if m.chat == chat_id]
        return sorted(msgs, key=lambda m: m.created_at)
