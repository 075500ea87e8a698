#!/usr/bin/env python3
# /// script
# dependencies = [
#   "fastapi>=0.104.0",
#   "uvicorn>=0.24.0",
#   "sqlmodel>=0.0.14,<0.1.0",
#   "jinja2>=3.1.0",
#   "python-multipart>=0.0.6",
#   "httpx>=0.24.0",
# ]
# ///

"""
FastAPI + HTMX Kanban Board

Web interface for the Kanban Task API. The board keeps its own copy of the task list
(TaskStore), applies edits optimistically and rolls them back when the API refuses them.
Cards can be dragged between columns, titles edited inline, priorities picked and points
nudged up or down.

Usage: uv run kanban_web.py --api-url http://127.0.0.1:3001
"""

import argparse
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import HTMLResponse
from jinja2 import DictLoader, Environment, select_autoescape
import uvicorn

from api_client import DEFAULT_API_URL, DEFAULT_TIMEOUT, TasksAPI
from board import Board, can_decrement, can_increment
from task_models import Priority
from task_store import TaskStore

# Set by main(); read when the app starts
API_URL = DEFAULT_API_URL
API_TIMEOUT = DEFAULT_TIMEOUT
REFETCH_ON_FAILURE = False


BOARD_TEMPLATE = """
{% if board.error_message %}
<div class="error-banner" role="alert">
    <span class="error-text">{{ board.error_message }}</span>
    {% if board.show_retry %}
    <button class="btn btn-sm" hx-post="/reload" hx-target="#kanban-board" hx-swap="innerHTML">Retry</button>
    {% endif %}
    <button class="btn btn-sm btn-secondary" hx-post="/errors/dismiss" hx-target="#kanban-board" hx-swap="innerHTML">Dismiss</button>
</div>
{% endif %}
<div class="kanban-columns">
{% for column in board.columns %}
    <div class="kanban-column">
        <div class="column-header">
            <h2 class="column-title">{{ column.title }}</h2>
            <span class="item-count">{{ column.tasks|length }}</span>
            <span class="column-points">{{ column.total_points }}</span>
        </div>
        <div class="task-list" data-status="{{ column.status.value }}">
        {% for task in column.tasks %}
            <div class="task-card priority-{{ task.priority.value }}" data-task-id="{{ task.id }}">
                <input class="card-title" name="title" value="{{ task.title }}"
                       hx-put="/tasks/{{ task.id }}/title" hx-trigger="change"
                       hx-target="#kanban-board" hx-swap="innerHTML">
                <div class="card-footer">
                    <span class="card-id">#{{ task.id[-6:] }}</span>
                    <select class="priority-select" name="priority"
                            hx-put="/tasks/{{ task.id }}/priority" hx-trigger="change"
                            hx-target="#kanban-board" hx-swap="innerHTML">
                    {% for priority in priorities %}
                        <option value="{{ priority.value }}"{% if priority == task.priority %} selected{% endif %}>{{ priority.value|title }}</option>
                    {% endfor %}
                    </select>
                    <div class="points">
                        <button class="points-down" hx-post="/tasks/{{ task.id }}/points/decrement"
                                hx-target="#kanban-board" hx-swap="innerHTML"{% if not can_decrement(task) %} disabled{% endif %}>&minus;</button>
                        <span class="points-value">{{ task.points }}</span>
                        <button class="points-up" hx-post="/tasks/{{ task.id }}/points/increment"
                                hx-target="#kanban-board" hx-swap="innerHTML"{% if not can_increment(task) %} disabled{% endif %}>+</button>
                    </div>
                    <button class="btn btn-sm btn-danger" hx-delete="/tasks/{{ task.id }}"
                            hx-target="#kanban-board" hx-swap="innerHTML" hx-confirm="Delete this task?">Delete</button>
                </div>
            </div>
        {% endfor %}
        </div>
    </div>
{% endfor %}
</div>
"""

PAGE_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Kanban Board</title>
    <script src="https://unpkg.com/htmx.org@1.9.10"></script>
    <script src="https://unpkg.com/sortablejs@1.15.0/Sortable.min.js"></script>
    <style>
        * { margin: 0; padding: 0; box-sizing: border-box; }

        body {
            font-family: 'Inter', system-ui, sans-serif;
            background: #f4f5f7;
            color: #172b4d;
            line-height: 1.5;
        }

        .header { padding: 1.5rem 2rem; background: #0052cc; color: #fff; }
        .header h1 { font-size: 1.75rem; }

        .container { max-width: 1400px; margin: 0 auto; padding: 2rem; }

        .controls { display: flex; justify-content: space-between; gap: 1rem; margin-bottom: 1.5rem; }
        .add-form { display: flex; gap: 0.5rem; flex: 1; }
        .form-input { flex: 1; padding: 0.5rem; border: 1px solid #c1c7d0; border-radius: 4px; }

        .btn {
            background: #0052cc; color: #fff; border: none; border-radius: 4px;
            padding: 0.5rem 1rem; cursor: pointer; font-weight: 500;
        }
        .btn:hover { background: #0065ff; }
        .btn-sm { padding: 0.25rem 0.5rem; font-size: 0.8rem; }
        .btn-secondary { background: #6b778c; }
        .btn-danger { background: #de350b; }

        .error-banner {
            display: flex; align-items: center; gap: 0.75rem; margin-bottom: 1rem;
            padding: 0.75rem 1rem; background: #ffebe6; border: 1px solid #de350b; border-radius: 4px;
        }
        .error-text { flex: 1; color: #bf2600; }

        .kanban-columns { display: grid; grid-template-columns: repeat(3, 1fr); gap: 1.5rem; }
        .kanban-column { background: #ebecf0; border-radius: 6px; padding: 1rem; min-height: 500px; }
        .kanban-column.hovering { background: #dfe1e6; }

        .column-header { display: flex; align-items: center; gap: 0.5rem; margin-bottom: 1rem; }
        .column-title { flex: 1; font-size: 1.1rem; text-transform: uppercase; color: #5e6c84; }
        .item-count, .column-points { background: #dfe1e6; border-radius: 10px; padding: 0 0.6rem; font-weight: 700; }
        .column-points { background: #deebff; color: #0747a6; }

        .task-list { min-height: 400px; }

        .task-card {
            background: #fff; border-radius: 4px; padding: 0.75rem; margin-bottom: 0.75rem;
            box-shadow: 0 1px 2px rgba(9, 30, 66, 0.25); cursor: grab; border-left: 4px solid #c1c7d0;
        }
        .task-card.priority-high { border-left-color: #de350b; }
        .task-card.priority-medium { border-left-color: #ffab00; }
        .task-card.priority-low { border-left-color: #0065ff; }

        .card-title {
            width: 100%; border: 1px solid transparent; border-radius: 3px;
            padding: 0.25rem; font-size: 1rem; font-weight: 600; background: transparent;
        }
        .card-title:focus { border-color: #4c9aff; background: #fff; outline: none; }

        .card-footer { display: flex; align-items: center; gap: 0.5rem; margin-top: 0.5rem; font-size: 0.85rem; }
        .card-id { font-family: monospace; background: #f4f5f7; padding: 0 0.4rem; border-radius: 3px; }
        .points { display: flex; align-items: center; gap: 0.3rem; margin-left: auto; }
        .points button { width: 1.6rem; height: 1.6rem; border-radius: 50%; border: 1px solid #c1c7d0; cursor: pointer; }
        .points button:disabled { opacity: 0.3; cursor: not-allowed; }
        .points-value { font-weight: 700; min-width: 1.5rem; text-align: center; }

        .sortable-ghost { opacity: 0.4; }

        @media (max-width: 900px) {
            .kanban-columns { grid-template-columns: 1fr; }
        }
    </style>
</head>
<body>
    <div class="header">
        <h1>Kanban Board</h1>
    </div>

    <div class="container">
        <div class="controls">
            <form class="add-form" hx-post="/tasks" hx-target="#kanban-board" hx-swap="innerHTML"
                  hx-on::after-request="this.reset()">
                <input type="text" name="title" class="form-input" placeholder="Enter task title...">
                <button type="submit" class="btn">Add Task</button>
            </form>
            <button class="btn btn-secondary" hx-post="/reload" hx-target="#kanban-board" hx-swap="innerHTML">Refresh</button>
        </div>

        <div class="kanban-board" id="kanban-board">
            {% include "board.html" %}
        </div>
    </div>

    <script>
        // Highlight the column a card is being dragged over
        function setHovering(column) {
            document.querySelectorAll('.kanban-column.hovering').forEach(el => {
                if (el !== column) {
                    el.classList.remove('hovering');
                }
            });
            if (column) {
                column.classList.add('hovering');
            }
        }

        // Dropping a card asks the server to move it; the swapped-in board shows the
        // confirmed column, or the original one if the move was rejected.
        function initializeSortable() {
            document.querySelectorAll('.task-list').forEach(list => {
                new Sortable(list, {
                    group: 'tasks',
                    animation: 150,
                    ghostClass: 'sortable-ghost',
                    onMove: function(evt) {
                        setHovering(evt.to.closest('.kanban-column'));
                    },
                    onEnd: function(evt) {
                        setHovering(null);
                        const taskId = evt.item.dataset.taskId;
                        const newStatus = evt.to.dataset.status;
                        htmx.ajax('PUT', `/tasks/${taskId}/status`, {
                            target: '#kanban-board',
                            swap: 'innerHTML',
                            values: {status: newStatus}
                        });
                    }
                });
            });
            document.querySelectorAll('.kanban-column').forEach(column => {
                column.addEventListener('dragenter', () => setHovering(column));
            });
        }

        document.addEventListener('DOMContentLoaded', initializeSortable);

        document.body.addEventListener('htmx:afterSwap', function(evt) {
            if (evt.target.id === 'kanban-board') {
                initializeSortable();
            }
        });

        // Commit title edits on Enter as well as on blur
        document.body.addEventListener('keydown', function(evt) {
            if (evt.key === 'Enter' && evt.target.classList.contains('card-title')) {
                evt.preventDefault();
                evt.target.blur();
            }
        });
    </script>
</body>
</html>
"""

templates = Environment(
    loader=DictLoader({"board.html": BOARD_TEMPLATE, "page.html": PAGE_TEMPLATE}),
    autoescape=select_autoescape(["html"]),
)


def render(template_name: str, board: Board) -> str:
    return templates.get_template(template_name).render(
        board=board,
        priorities=list(Priority),
        can_increment=can_increment,
        can_decrement=can_decrement,
    )


def render_board(board: Board) -> str:
    """Render the board fragment that HTMX swaps into #kanban-board"""
    return render("board.html", board)


@asynccontextmanager
async def lifespan(app: FastAPI):
    api = TasksAPI(base_url=API_URL, timeout=API_TIMEOUT)
    app.state.board = Board(TaskStore(api, refetch_on_failure=REFETCH_ON_FAILURE))
    yield
    await api.aclose()


app = FastAPI(title="Kanban Board", description="Kanban interface for the task API", lifespan=lifespan)


def get_board(request: Request) -> Board:
    """Dependency to get the board owned by this app"""
    return request.app.state.board


async def board_response(board: Board, pending=None) -> HTMLResponse:
    """Wait for the gesture's remote call, then render the settled board"""
    if pending is not None:
        await pending
    return HTMLResponse(render_board(board))


@app.get("/", response_class=HTMLResponse)
async def read_root(board: Board = Depends(get_board)):
    """Main kanban board page"""
    await board.load()
    return render("page.html", board)


@app.get("/board", response_class=HTMLResponse)
async def get_kanban_board(board: Board = Depends(get_board)):
    """Get just the kanban board HTML for HTMX updates"""
    return await board_response(board)


@app.post("/reload", response_class=HTMLResponse)
async def reload_board(board: Board = Depends(get_board)):
    """Fetch the task list again"""
    await board.load()
    return await board_response(board)


@app.post("/errors/dismiss", response_class=HTMLResponse)
async def dismiss_error(board: Board = Depends(get_board)):
    board.dismiss_error()
    return await board_response(board)


@app.post("/tasks", response_class=HTMLResponse)
async def create_task(title: Optional[str] = Form(None), board: Board = Depends(get_board)):
    """Create a new task"""
    await board.add_task(title or "")
    return await board_response(board)


@app.put("/tasks/{task_id}/status", response_class=HTMLResponse)
async def update_task_status(task_id: str, status: str = Form(...), board: Board = Depends(get_board)):
    """Move a task to another column (drag and drop)"""
    return await board_response(board, run_gesture(board.drop, task_id, status))


@app.put("/tasks/{task_id}/title", response_class=HTMLResponse)
async def update_task_title(task_id: str, title: str = Form(""), board: Board = Depends(get_board)):
    """Commit an inline title edit"""
    require_task(board, task_id)
    return await board_response(board, board.edit_title(task_id, title))


@app.put("/tasks/{task_id}/priority", response_class=HTMLResponse)
async def update_task_priority(task_id: str, priority: str = Form(...), board: Board = Depends(get_board)):
    """Pick a new priority"""
    require_task(board, task_id)
    return await board_response(board, run_gesture(board.change_priority, task_id, priority))


@app.post("/tasks/{task_id}/points/increment", response_class=HTMLResponse)
async def increment_points(task_id: str, board: Board = Depends(get_board)):
    require_task(board, task_id)
    return await board_response(board, board.increment_points(task_id))


@app.post("/tasks/{task_id}/points/decrement", response_class=HTMLResponse)
async def decrement_points(task_id: str, board: Board = Depends(get_board)):
    require_task(board, task_id)
    return await board_response(board, board.decrement_points(task_id))


@app.delete("/tasks/{task_id}", response_class=HTMLResponse)
async def delete_task(task_id: str, board: Board = Depends(get_board)):
    """Delete a task"""
    require_task(board, task_id)
    return await board_response(board, board.delete_task(task_id))


def require_task(board: Board, task_id: str):
    if board.store.get(task_id) is None:
        raise HTTPException(status_code=404, detail="Task not found")


def run_gesture(gesture, *args):
    """Run a board gesture; a value it cannot parse is the client's fault (422)"""
    try:
        return gesture(*args)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


def main():
    """Main entry point"""
    global API_URL, API_TIMEOUT, REFETCH_ON_FAILURE

    parser = argparse.ArgumentParser(description="Kanban Board Web Interface")
    parser.add_argument(
        "--api-url",
        type=str,
        default=DEFAULT_API_URL,
        help=f"Kanban Task API URL (default: $KANBAN_API_URL or {DEFAULT_API_URL})"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"API request timeout in seconds (default: {DEFAULT_TIMEOUT})"
    )
    parser.add_argument(
        "--refetch-on-failure",
        action="store_true",
        help="Reload the whole task list after a failed edit, on top of rolling it back"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)"
    )

    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    API_URL = args.api_url
    API_TIMEOUT = args.timeout
    REFETCH_ON_FAILURE = args.refetch_on_failure

    print(f"Task API: {API_URL}")
    print(f"🚀 Starting Kanban Board at http://{args.host}:{args.port}")
    print("   Press Ctrl+C to stop")

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=args.log_level
    )


if __name__ == "__main__":
    main()
