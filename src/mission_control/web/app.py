"""JSON API for the mission control dashboard."""

import json
import logging

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from mission_control.config import get_config
from mission_control.core import activity as activity_mod
from mission_control.core import agents as agents_mod
from mission_control.core import documents as documents_mod
from mission_control.core import messages as messages_mod
from mission_control.core import notifications as notifications_mod
from mission_control.core import search as search_mod
from mission_control.core import tasks as tasks_mod
from mission_control.core import workspaces as workspaces_mod
from mission_control.db.engine import init_db
from mission_control.errors import MissionControlError, NotFoundError, ValidationError
from mission_control.serialize import to_dict

logger = logging.getLogger(__name__)


def _get_db():
    config = get_config()
    return init_db(config.db_path)


async def _body(request: Request) -> dict:
    try:
        body = await request.json()
    except json.JSONDecodeError:
        raise ValidationError("Request body must be valid JSON") from None
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _require(body: dict, key: str):
    value = body.get(key)
    if value is None or value == "":
        raise ValidationError(f"Missing required field: {key}")
    return value


def _id_list(body: dict, key: str) -> list[str] | None:
    """Read a field holding one ID or a list of IDs."""
    value = body.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return value
    raise ValidationError(f"{key} must be a string or a list of strings")


def _int_param(value: str | None, name: str) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None


def _not_found(kind: str, ident) -> JSONResponse:
    return JSONResponse({"error": f"{kind} not found: {ident}"}, status_code=404)


def _missing_target(kind: str, ident) -> JSONResponse:
    """Response for a mutation aimed at a record that does not exist."""
    if get_config().silent_not_found:
        return JSONResponse({"ok": True})
    return _not_found(kind, ident)


# ── Workspaces ────────────────────────────────────────────────────────────────


async def api_workspaces(request: Request):
    db = _get_db()
    try:
        if request.method == "POST":
            body = await _body(request)
            workspace = workspaces_mod.create_workspace(
                db, _require(body, "name"), body.get("description")
            )
            return JSONResponse(to_dict(workspace), status_code=201)
        return JSONResponse([to_dict(w) for w in workspaces_mod.list_workspaces(db)])
    finally:
        db.close()


async def api_get_workspace(request: Request):
    workspace_id = request.path_params["workspace_id"]
    db = _get_db()
    try:
        workspace = workspaces_mod.get_workspace(db, workspace_id)
        if not workspace:
            return _not_found("Workspace", workspace_id)
        return JSONResponse(to_dict(workspace))
    finally:
        db.close()


async def api_workspace_summary(request: Request):
    workspace_id = request.path_params["workspace_id"]
    db = _get_db()
    try:
        summary = workspaces_mod.workspace_summary(db, workspace_id)
        if summary is None:
            return _not_found("Workspace", workspace_id)
        return JSONResponse(summary)
    finally:
        db.close()


# ── Agents ────────────────────────────────────────────────────────────────────


async def api_workspace_agents(request: Request):
    workspace_id = request.path_params["workspace_id"]
    db = _get_db()
    try:
        if request.method == "POST":
            body = await _body(request)
            agent = agents_mod.create_agent(
                db,
                workspace_id,
                name=_require(body, "name"),
                role=_require(body, "role"),
                session_key=_require(body, "session_key"),
                description=body.get("description"),
                avatar_emoji=body.get("avatar_emoji") or "🤖",
                is_master=bool(body.get("is_master", False)),
            )
            return JSONResponse(to_dict(agent), status_code=201)
        agents = agents_mod.list_agents(db, workspace_id)
        return JSONResponse([to_dict(a) for a in agents])
    finally:
        db.close()


async def api_agent_status(request: Request):
    agent_id = request.path_params["agent_id"]
    db = _get_db()
    try:
        body = await _body(request)
        agent = agents_mod.update_agent_status(db, agent_id, _require(body, "status"))
        if not agent:
            return _missing_target("Agent", agent_id)
        return JSONResponse(to_dict(agent))
    finally:
        db.close()


async def api_agent_heartbeat(request: Request):
    agent_id = request.path_params["agent_id"]
    db = _get_db()
    try:
        agent = agents_mod.heartbeat(db, agent_id)
        if not agent:
            return _missing_target("Agent", agent_id)
        return JSONResponse(to_dict(agent))
    finally:
        db.close()


async def api_agent_notifications(request: Request):
    agent_id = request.path_params["agent_id"]
    db = _get_db()
    try:
        pending = notifications_mod.list_undelivered(db, agent_id)
        return JSONResponse([to_dict(n) for n in pending])
    finally:
        db.close()


# ── Tasks ─────────────────────────────────────────────────────────────────────


async def api_workspace_tasks(request: Request):
    workspace_id = request.path_params["workspace_id"]
    config = get_config()
    db = _get_db()
    try:
        if request.method == "POST":
            body = await _body(request)
            task = tasks_mod.create_task(
                db,
                workspace_id,
                _require(body, "title"),
                description=body.get("description") or "",
                priority=body.get("priority"),
                assignee_ids=_id_list(body, "assignee_ids"),
                due_date=body.get("due_date"),
                initial_status=config.initial_task_status,
            )
            return JSONResponse(to_dict(task), status_code=201)
        tasks = tasks_mod.list_tasks(
            db,
            workspace_id,
            status=request.query_params.get("status"),
            assignee_id=request.query_params.get("assignee"),
        )
        return JSONResponse([to_dict(t) for t in tasks])
    finally:
        db.close()


async def api_get_task(request: Request):
    task_id = request.path_params["task_id"]
    db = _get_db()
    try:
        task = tasks_mod.get_task(db, task_id)
        if not task:
            return _not_found("Task", task_id)
        td = to_dict(task)
        conversation = messages_mod.get_task_conversation(db, task_id)
        td["conversation_id"] = conversation.id if conversation else None
        td["history"] = [
            to_dict(a) for a in activity_mod.list_task_activities(db, task_id)
        ]
        return JSONResponse(td)
    finally:
        db.close()


async def api_task_status(request: Request):
    task_id = request.path_params["task_id"]
    db = _get_db()
    try:
        body = await _body(request)
        task = tasks_mod.update_task_status(db, task_id, _require(body, "status"))
        if not task:
            return _missing_target("Task", task_id)
        return JSONResponse(to_dict(task))
    finally:
        db.close()


async def api_task_assign(request: Request):
    task_id = request.path_params["task_id"]
    db = _get_db()
    try:
        body = await _body(request)
        agent_ids = _id_list(body, "agent_ids") or _id_list(body, "agent_id")
        if not agent_ids:
            raise ValidationError("Missing required field: agent_ids")
        task = tasks_mod.assign_task(db, task_id, agent_ids)
        if not task:
            return _missing_target("Task", task_id)
        return JSONResponse(to_dict(task))
    finally:
        db.close()


# ── Messages ──────────────────────────────────────────────────────────────────


async def api_workspace_conversations(request: Request):
    workspace_id = request.path_params["workspace_id"]
    db = _get_db()
    try:
        body = await _body(request)
        conversation = messages_mod.create_conversation(
            db,
            workspace_id,
            body.get("type", "group"),
            task_id=body.get("task_id"),
        )
        return JSONResponse(to_dict(conversation), status_code=201)
    finally:
        db.close()


async def api_task_messages(request: Request):
    task_id = request.path_params["task_id"]
    db = _get_db()
    try:
        if request.method == "POST":
            body = await _body(request)
            message = messages_mod.post_task_message(
                db,
                task_id,
                _require(body, "content"),
                sender_agent_id=body.get("sender_agent_id"),
                attachments=body.get("attachments"),
            )
            if not message:
                return _missing_target("Task", task_id)
            return JSONResponse(to_dict(message), status_code=201)
        messages = messages_mod.list_task_messages(db, task_id)
        return JSONResponse([to_dict(m) for m in messages])
    finally:
        db.close()


async def api_conversation_messages(request: Request):
    conversation_id = request.path_params["conversation_id"]
    db = _get_db()
    try:
        if request.method == "POST":
            body = await _body(request)
            message = messages_mod.post_message(
                db,
                conversation_id,
                _require(body, "content"),
                sender_agent_id=body.get("sender_agent_id"),
                attachments=body.get("attachments"),
            )
            if not message:
                return _missing_target("Conversation", conversation_id)
            return JSONResponse(to_dict(message), status_code=201)
        messages = messages_mod.list_messages(db, conversation_id)
        return JSONResponse([to_dict(m) for m in messages])
    finally:
        db.close()


# ── Activity & Notifications ──────────────────────────────────────────────────


async def api_activities(request: Request):
    params = request.query_params
    limit = _int_param(params.get("limit"), "limit")
    activity_type = params.get("type")
    db = _get_db()
    try:
        activities = activity_mod.list_activities(
            db,
            workspace_id=params.get("workspace_id"),
            activity_type=None if activity_type in (None, "", "all") else activity_type,
            limit=limit if limit is not None else get_config().activity_limit,
        )
        return JSONResponse([to_dict(a) for a in activities])
    finally:
        db.close()


async def api_agent_notifications_delivered(request: Request):
    agent_id = request.path_params["agent_id"]
    db = _get_db()
    try:
        count = notifications_mod.mark_all_delivered(db, agent_id)
        return JSONResponse({"delivered": count})
    finally:
        db.close()


async def api_notification_delivered(request: Request):
    notification_id = request.path_params["notification_id"]
    db = _get_db()
    try:
        notification = notifications_mod.mark_delivered(db, notification_id)
        return JSONResponse(to_dict(notification) if notification else {"ok": True})
    finally:
        db.close()


# ── Documents & Search ────────────────────────────────────────────────────────


async def api_workspace_documents(request: Request):
    workspace_id = request.path_params["workspace_id"]
    db = _get_db()
    try:
        if request.method == "POST":
            body = await _body(request)
            document = documents_mod.create_document(
                db,
                workspace_id,
                _require(body, "title"),
                body.get("content", ""),
                doc_type=body.get("type", "notes"),
                task_id=body.get("task_id"),
                created_by=body.get("created_by"),
            )
            return JSONResponse(to_dict(document), status_code=201)
        documents = documents_mod.list_documents(
            db,
            workspace_id,
            task_id=request.query_params.get("task_id"),
            doc_type=request.query_params.get("type"),
        )
        return JSONResponse([to_dict(d) for d in documents])
    finally:
        db.close()


async def api_search(request: Request):
    workspace_id = request.path_params["workspace_id"]
    db = _get_db()
    try:
        results = search_mod.search(db, workspace_id, request.query_params.get("q", ""))
        return JSONResponse([to_dict(r) for r in results])
    finally:
        db.close()


# ── Errors ────────────────────────────────────────────────────────────────────


async def _engine_error(request: Request, exc: MissionControlError):
    status_code = 404 if isinstance(exc, NotFoundError) else 400
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse({"error": str(exc)}, status_code=status_code)


# ── App ───────────────────────────────────────────────────────────────────────


def create_app() -> Starlette:
    routes = [
        Route("/api/workspaces", api_workspaces, methods=["GET", "POST"]),
        Route("/api/workspaces/{workspace_id}", api_get_workspace),
        Route("/api/workspaces/{workspace_id}/summary", api_workspace_summary),
        Route("/api/workspaces/{workspace_id}/agents", api_workspace_agents, methods=["GET", "POST"]),
        Route("/api/workspaces/{workspace_id}/tasks", api_workspace_tasks, methods=["GET", "POST"]),
        Route("/api/workspaces/{workspace_id}/documents", api_workspace_documents, methods=["GET", "POST"]),
        Route("/api/workspaces/{workspace_id}/search", api_search),
        Route(
            "/api/workspaces/{workspace_id}/conversations",
            api_workspace_conversations,
            methods=["POST"],
        ),
        Route("/api/agents/{agent_id}/status", api_agent_status, methods=["POST"]),
        Route("/api/agents/{agent_id}/heartbeat", api_agent_heartbeat, methods=["POST"]),
        Route("/api/agents/{agent_id}/notifications", api_agent_notifications),
        Route(
            "/api/agents/{agent_id}/notifications/delivered",
            api_agent_notifications_delivered,
            methods=["POST"],
        ),
        Route("/api/tasks/{task_id}", api_get_task),
        Route("/api/tasks/{task_id}/status", api_task_status, methods=["POST"]),
        Route("/api/tasks/{task_id}/assign", api_task_assign, methods=["POST"]),
        Route("/api/tasks/{task_id}/messages", api_task_messages, methods=["GET", "POST"]),
        Route(
            "/api/conversations/{conversation_id:int}/messages",
            api_conversation_messages,
            methods=["GET", "POST"],
        ),
        Route("/api/activities", api_activities),
        Route(
            "/api/notifications/{notification_id:int}/delivered",
            api_notification_delivered,
            methods=["POST"],
        ),
    ]
    return Starlette(
        routes=routes,
        exception_handlers={MissionControlError: _engine_error},
    )


def run_server(host: str = "127.0.0.1", port: int = 8787):
    app = create_app()
    uvicorn.run(app, host=host, port=port)
