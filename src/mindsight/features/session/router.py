from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, model_validator

from ...core.encoding import split_data_uri
from ...core.errors import AuthenticationRequired, InvalidTransition
from ...core.identity import AuthState
from ...core.models import Identity, SketchArtifact
from .controller import SessionController
from .presenters import chat_payload, coach_payload, history_payload, session_payload, stats_payload
from .schemas import ExitPayload

__all__ = ["ChatMessageRequest", "NotesRequest", "SignInRequest", "SketchRequest", "create_session_router"]

_DEFAULT_SKETCH_MIME = "image/png"


class NotesRequest(BaseModel):
    text: str = ""


class ChatMessageRequest(BaseModel):
    text: str


class SketchRequest(BaseModel):
    image: str
    mime_type: str | None = None


class SignInRequest(BaseModel):
    uid: str
    display_name: str = ""

    @model_validator(mode="after")
    def _normalize(self) -> SignInRequest:
        uid = self.uid.strip()
        if not uid:
            raise ValueError("uid must not be empty")
        self.uid = uid
        self.display_name = self.display_name.strip()
        return self


class _SessionEndpoints:
    def __init__(self, controller: SessionController, auth: AuthState) -> None:
        self.controller = controller
        self.auth = auth

    # ------------------------------------------------------------------ helpers
    def _session_response(self) -> JSONResponse:
        return JSONResponse(session_payload(self.controller).to_dict())

    async def _finish(self, task: asyncio.Task[None] | None, wait: bool) -> None:
        if wait and task is not None:
            await task
            await self.controller.settle_history()

    # ------------------------------------------------------------------ actions
    async def start(self, wait: bool) -> JSONResponse:
        try:
            task = self.controller.start_session()
        except InvalidTransition as exc:
            raise HTTPException(409, str(exc)) from exc
        if task is None:
            notice = self.controller.notice
            raise HTTPException(401, notice.message if notice is not None else "authentication required")
        await self._finish(task, wait)
        return self._session_response()

    async def step(self, forward: bool) -> JSONResponse:
        try:
            if forward:
                self.controller.advance_step()
            else:
                self.controller.retreat_step()
        except InvalidTransition as exc:
            raise HTTPException(409, str(exc)) from exc
        return self._session_response()

    async def notes(self, body: NotesRequest) -> JSONResponse:
        try:
            self.controller.record_notes(body.text)
        except InvalidTransition as exc:
            raise HTTPException(409, str(exc)) from exc
        return self._session_response()

    async def sketch(self, body: SketchRequest) -> JSONResponse:
        try:
            image, mime = split_data_uri(body.image, body.mime_type or _DEFAULT_SKETCH_MIME)
        except ValueError as exc:
            raise HTTPException(400, str(exc)) from exc
        try:
            self.controller.record_sketch(SketchArtifact(image=image, mime_type=mime))
        except InvalidTransition as exc:
            raise HTTPException(409, str(exc)) from exc
        return self._session_response()

    async def submit(self, wait: bool) -> JSONResponse:
        try:
            task = self.controller.submit_session()
        except InvalidTransition as exc:
            raise HTTPException(409, str(exc)) from exc
        await self._finish(task, wait)
        return self._session_response()

    async def exit(self) -> JSONResponse:
        try:
            exited = self.controller.request_exit()
        except InvalidTransition as exc:
            raise HTTPException(409, str(exc)) from exc
        payload = ExitPayload(exited=exited, session=session_payload(self.controller))
        return JSONResponse(payload.to_dict())

    async def confirm_exit(self) -> JSONResponse:
        try:
            self.controller.confirm_exit()
        except InvalidTransition as exc:
            raise HTTPException(409, str(exc)) from exc
        return self._session_response()

    async def cancel_exit(self) -> JSONResponse:
        self.controller.cancel_exit()
        return self._session_response()

    async def finish(self) -> JSONResponse:
        try:
            self.controller.finish_feedback()
        except InvalidTransition as exc:
            raise HTTPException(409, str(exc)) from exc
        return self._session_response()

    async def dismiss(self) -> JSONResponse:
        self.controller.dismiss_notice()
        return self._session_response()

    async def coach(self, wait: bool) -> JSONResponse:
        try:
            task = self.controller.request_coach_report()
        except InvalidTransition as exc:
            raise HTTPException(409, str(exc)) from exc
        await self._finish(task, wait)
        return JSONResponse(coach_payload(self.controller).to_dict())

    async def open_chat(self) -> JSONResponse:
        try:
            self.controller.open_coach_chat()
        except AuthenticationRequired as exc:
            raise HTTPException(401, exc.message) from exc
        return JSONResponse(chat_payload(self.controller).to_dict())

    async def chat_message(self, body: ChatMessageRequest, wait: bool) -> JSONResponse:
        try:
            task = self.controller.send_chat_message(body.text)
        except InvalidTransition as exc:
            raise HTTPException(409, str(exc)) from exc
        if wait:
            await task
        return JSONResponse(chat_payload(self.controller).to_dict())

    async def close_chat(self) -> JSONResponse:
        self.controller.close_coach_chat()
        return JSONResponse(chat_payload(self.controller).to_dict())

    async def sign_in(self, body: SignInRequest) -> JSONResponse:
        self.auth.sign_in(Identity(uid=body.uid, display_name=body.display_name))
        await self.controller.settle_history()
        return self._session_response()

    async def sign_out(self) -> JSONResponse:
        self.auth.sign_out()
        return self._session_response()


def create_session_router(controller: SessionController, auth: AuthState) -> APIRouter:
    """Expose the controller's transitions over HTTP.

    Endpoints that start asynchronous work return immediately; pass
    ``?wait=true`` to respond only once that work has settled.
    """

    endpoints = _SessionEndpoints(controller, auth)
    router = APIRouter(prefix="/api/v1", tags=["session"])

    @router.get("/session")
    async def get_session() -> JSONResponse:
        return endpoints._session_response()

    @router.post("/session")
    async def start_session(wait: bool = False) -> JSONResponse:
        return await endpoints.start(wait)

    @router.post("/session/step/next")
    async def next_step() -> JSONResponse:
        return await endpoints.step(forward=True)

    @router.post("/session/step/back")
    async def previous_step() -> JSONResponse:
        return await endpoints.step(forward=False)

    @router.put("/session/notes")
    async def put_notes(body: NotesRequest) -> JSONResponse:
        return await endpoints.notes(body)

    @router.put("/session/sketch")
    async def put_sketch(body: SketchRequest) -> JSONResponse:
        return await endpoints.sketch(body)

    @router.post("/session/submit")
    async def submit_session(wait: bool = False) -> JSONResponse:
        return await endpoints.submit(wait)

    @router.post("/session/exit")
    async def request_exit() -> JSONResponse:
        return await endpoints.exit()

    @router.post("/session/exit/confirm")
    async def confirm_exit() -> JSONResponse:
        return await endpoints.confirm_exit()

    @router.post("/session/exit/cancel")
    async def cancel_exit() -> JSONResponse:
        return await endpoints.cancel_exit()

    @router.post("/session/feedback/finish")
    async def finish_feedback() -> JSONResponse:
        return await endpoints.finish()

    @router.delete("/session/notice")
    async def dismiss_notice() -> JSONResponse:
        return await endpoints.dismiss()

    @router.get("/history")
    async def get_history() -> JSONResponse:
        return JSONResponse(history_payload(controller.history).to_dict())

    @router.get("/history/stats")
    async def get_history_stats() -> JSONResponse:
        return JSONResponse(stats_payload(controller.history).to_dict())

    @router.get("/coach")
    async def get_coach() -> JSONResponse:
        return JSONResponse(coach_payload(controller).to_dict())

    @router.post("/coach")
    async def request_coach(wait: bool = False) -> JSONResponse:
        return await endpoints.coach(wait)

    @router.get("/coach/chat")
    async def get_chat() -> JSONResponse:
        return JSONResponse(chat_payload(controller).to_dict())

    @router.post("/coach/chat")
    async def open_chat() -> JSONResponse:
        return await endpoints.open_chat()

    @router.post("/coach/chat/messages")
    async def send_chat_message(body: ChatMessageRequest, wait: bool = False) -> JSONResponse:
        return await endpoints.chat_message(body, wait)

    @router.delete("/coach/chat")
    async def close_chat() -> JSONResponse:
        return await endpoints.close_chat()

    @router.post("/auth/sign-in")
    async def sign_in(body: SignInRequest) -> JSONResponse:
        return await endpoints.sign_in(body)

    @router.post("/auth/sign-out")
    async def sign_out() -> JSONResponse:
        return await endpoints.sign_out()

    return router
