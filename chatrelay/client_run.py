import argparse
import asyncio
import uuid
from chatrelay.client.client import RelayClient
from chatrelay.protocol.types import EventName
from chatrelay.server.config import configure_logging


async def _printer(client: RelayClient):
    while True:
        event = await client.next_event()
        if event.name == EventName.MESSAGE_RECEIVED:
            msg = event.data
            sender = msg.get('sender')
            if isinstance(sender, dict):
                sender = sender.get('username') or sender.get('id')
            print(f"\n[{msg.get('chat', {}).get('id')}] {sender}: {msg.get('content')}")
        elif event.name in (EventName.TYPING, EventName.STOP_TYPING):
            print(f"\n({event.data}) {event.name.value}")
        print("> ", end='', flush=True)


async def main(url: str, user_id: str):
    client = RelayClient({'id': user_id}, url=url)
    await client.connect()
    printer = asyncio.create_task(_printer(client))

    print("Commands: /chat <id> <member,member,...> select a chat, /msg <text> send, exit")
    chat = None
    loop = asyncio.get_running_loop()
    try:
        while True:
            cmd = await loop.run_in_executor(None, input, "> ")
            if cmd.startswith("/chat "):
                parts = cmd.split()
                if len(parts) < 3:
                    print("usage: /chat <id> <member,member,...>")
                    continue
                members = [m for m in parts[2].split(',') if m]
                if user_id not in members:
                    members.append(user_id)
                chat = {'id': parts[1], 'members': members}
                await client.join_chat(chat['id'])
                print(f"Current chat: {chat['id']}")
            elif cmd.startswith("/msg ") and chat:
                await client.send_message({
                    'id': uuid.uuid4().hex,
                    'chat': chat,
                    'sender': {'id': user_id},
                    'content': cmd[5:],
                })
            elif cmd == "exit":
                break
    finally:
        printer.cancel()
        await client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="chatrelay demo client")
    parser.add_argument("user_id")
    parser.add_argument("--url", default="ws://127.0.0.1:8765")
    args = parser.parse_args()
    configure_logging("WARNING")
    try:
        asyncio.run(main(args.url, args.user_id))
    except KeyboardInterrupt:
        print("\nBye")
