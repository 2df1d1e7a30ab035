import logging
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .chat_manager import ChatManager
from .errors import ChatError
from .models import CreateGroup, GroupMember, RenameGroup, SendMessage

logger = logging.getLogger(__name__)


def current_user(x_user_id: str | None = Header(None)) -> str:
    # Authentication lives in front of this service; it forwards the user id.
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication invalid")
    return x_user_id


def create_app(chat_mgr: ChatManager, prefix: str = "/api/v1") -> FastAPI:
    app = FastAPI(title="chatrelay")
    app.state.chat_mgr = chat_mgr

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    chat = APIRouter(prefix="/chat", dependencies=[Depends(current_user)])

    @chat.get("/")
    async def list_chats(user_id: str = Depends(current_user)):
        return chat_mgr.list_chats(user_id)

    @chat.get("/{other_user_id}")
    async def get_direct_chat(other_user_id: str, user_id: str = Depends(current_user)):
        return chat_mgr.get_or_create_direct_chat(user_id, other_user_id)

    @chat.post("/createGroup")
    async def create_group(payload: CreateGroup, user_id: str = Depends(current_user)):
        return chat_mgr.create_group(user_id, payload.name, payload.users)

    @chat.patch("/renameGroup")
    async def rename_group(payload: RenameGroup):
        return chat_mgr.rename_group(payload.chat_id, payload.chat_name)

    @chat.patch("/addUserToGroup")
    async def add_user_to_group(payload: GroupMember):
        return chat_mgr.add_member(payload.chat_id, payload.user_id)

    @chat.patch("/removeFromGroup")
    async def remove_from_group(payload: GroupMember):
        return chat_mgr.remove_member(payload.chat_id, payload.user_id)

    message = APIRouter(prefix="/message", dependencies=[Depends(current_user)])

    @message.post("/")
    async def send_message(payload: SendMessage, user_id: str = Depends(current_user)):
        return chat_mgr.record_message(payload.chat_id, user_id, payload.content)

    @message.get("/{chat_id}")
    async def list_messages(chat_id: str):
        return chat_mgr.list_messages(chat_id)

    app.include_router(chat, prefix=prefix)
    app.include_router(message, prefix=prefix)

    @app.get("/")
    async def read_root():
        return {"message": "Chat API ready"}

    return app
