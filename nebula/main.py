import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import AuthStore
from .config import Settings, load_settings
from .errors import ErrorKind, Result
from .kv import FileKV, KVStore
from .models import (
    CategoryRenameIn,
    LinkCreateIn,
    LinkDeleteIn,
    LinkTree,
    LinkUpdateIn,
    PasswordChangeIn,
    ReorderPatch,
    SessionCheck,
)
from .pages import render_change_password_page, render_dashboard_page, render_login_page
from .reconcile import reconcile
from .session import SessionCodec, now_ms
from .storage import LinkStore

logger = logging.getLogger(__name__)

COOKIE_NAME = "nebula_session"

_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.NOT_FOUND: 404,
}


def create_app(
    settings: Optional[Settings] = None,
    kv: Optional[KVStore] = None,
    clock=now_ms,
) -> FastAPI:
    settings = settings or load_settings()
    kv = kv if kv is not None else FileKV(settings.data_dir)

    app = FastAPI(title="Nebula")
    app.state.settings = settings
    app.state.codec = SessionCodec(settings.session_secret, settings.session_ttl, clock=clock)
    app.state.auth = AuthStore(kv)
    app.state.links = LinkStore(kv)

    @app.exception_handler(StarletteHTTPException)
    async def error_body(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code)

    _register_routes(app)
    return app


# ---- dependencies ----


def current_session(request: Request) -> SessionCheck:
    token = request.cookies.get(COOKIE_NAME, "")
    if not token:
        return SessionCheck(valid=False)
    return request.app.state.codec.verify(token)


def require_session(session: SessionCheck = Depends(current_session)) -> SessionCheck:
    if not session.valid:
        raise HTTPException(401, "Unauthorized")
    return session


async def json_body(request: Request) -> Dict[str, Any]:
    """Request JSON object, or {} when the body is missing or not an object."""
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _set_session_cookie(request: Request, response: Response, token: str) -> None:
    settings: Settings = request.app.state.settings
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=settings.session_ttl,
        path="/",
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
    )


def _unwrap(result: Result) -> Any:
    if not result.ok:
        raise HTTPException(_STATUS[result.error], result.message)
    return result.value


def _tree_response(tree: LinkTree) -> Dict[str, Any]:
    return {"ok": True, "data": tree.model_dump()}


def _register_routes(app: FastAPI) -> None:
    @app.post("/login")
    def login(request: Request, user: str = Form(""), password: str = Form("", alias="pass")):
        result = request.app.state.auth.login(user, password)
        if not result.ok:
            return Response("invalid username or password", status_code=403)
        identity: SessionCheck = result.value
        logger.info("User %r logged in (must change password: %s)", identity.user, identity.must_change)
        token = request.app.state.codec.mint(identity.user, identity.must_change)
        response = RedirectResponse("/", status_code=302)
        _set_session_cookie(request, response, token)
        return response

    @app.api_route("/logout", methods=["GET", "POST"])
    def logout():
        response = RedirectResponse("/", status_code=302)
        response.delete_cookie(COOKIE_NAME, path="/")
        return response

    @app.post("/api/change-password")
    async def change_password(
        request: Request,
        session: SessionCheck = Depends(require_session),
        body: Dict[str, Any] = Depends(json_body),
    ):
        payload = PasswordChangeIn.model_validate(body)
        _unwrap(request.app.state.auth.change_password(payload.old_pass, payload.new_pass))
        response = JSONResponse({"ok": True})
        _set_session_cookie(request, response, request.app.state.codec.mint(session.user, False))
        return response

    @app.get("/api/links")
    def get_links(request: Request, session: SessionCheck = Depends(require_session)):
        return request.app.state.links.load().model_dump()

    @app.post("/api/links")
    def add_link(
        request: Request,
        session: SessionCheck = Depends(require_session),
        body: Dict[str, Any] = Depends(json_body),
    ):
        payload = LinkCreateIn.model_validate(body)
        store = request.app.state.links
        tree = _unwrap(
            store.mutate(
                lambda tree: store.create_link(
                    tree,
                    payload.title,
                    payload.url,
                    icon=payload.icon,
                    category_id=payload.category_id,
                    category_name=payload.category_name,
                )
            )
        )
        return _tree_response(tree)

    @app.put("/api/links")
    def edit_link(
        request: Request,
        session: SessionCheck = Depends(require_session),
        body: Dict[str, Any] = Depends(json_body),
    ):
        payload = LinkUpdateIn.model_validate(body)
        store = request.app.state.links
        tree = _unwrap(
            store.mutate(
                lambda tree: store.update_link(
                    tree,
                    payload.link_id,
                    payload.title,
                    payload.url,
                    icon=payload.icon,
                    move_to_category_id=payload.move_to_category_id,
                )
            )
        )
        return _tree_response(tree)

    @app.delete("/api/links")
    def delete_link(
        request: Request,
        session: SessionCheck = Depends(require_session),
        body: Dict[str, Any] = Depends(json_body),
    ):
        payload = LinkDeleteIn.model_validate(body)
        store = request.app.state.links
        tree = _unwrap(store.mutate(lambda tree: store.delete_link(tree, payload.link_id)))
        return _tree_response(tree)

    @app.post("/api/reorder")
    def reorder(
        request: Request,
        session: SessionCheck = Depends(require_session),
        body: Dict[str, Any] = Depends(json_body),
    ):
        data = body.get("data")
        if not isinstance(data, dict) or not isinstance(data.get("categories"), list):
            raise HTTPException(400, "data.categories required")
        patch = ReorderPatch.model_validate(data)
        logger.debug("Reorder patch covers %d categories", len(patch.categories))
        store = request.app.state.links
        tree = _unwrap(store.mutate(lambda tree: Result.success(reconcile(tree, patch))))
        return _tree_response(tree)

    @app.post("/api/categories/rename")
    def rename_category(
        request: Request,
        session: SessionCheck = Depends(require_session),
        body: Dict[str, Any] = Depends(json_body),
    ):
        payload = CategoryRenameIn.model_validate(body)
        store = request.app.state.links
        tree = _unwrap(
            store.mutate(lambda tree: store.rename_category(tree, payload.category_id, payload.new_name))
        )
        return _tree_response(tree)

    @app.get("/", response_class=HTMLResponse)
    def index(request: Request, session: SessionCheck = Depends(current_session)):
        if not session.valid:
            return render_login_page()
        if session.must_change:
            return render_change_password_page()
        return render_dashboard_page(request.app.state.links.load())
