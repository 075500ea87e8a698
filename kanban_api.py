#!/usr/bin/env python3
# /// script
# dependencies = [
#   "fastapi>=0.104.0",
#   "uvicorn>=0.24.0",
#   "sqlmodel>=0.0.14,<0.1.0",
# ]
# ///

"""
Kanban Task API

REST service over the task collection used by the Kanban board. Tasks live in a
SQLite file inside the project directory.

Usage: uv run kanban_api.py --project-dir /path/to/project
"""

import argparse
import logging
import pathlib
import re
import sys
import uuid
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
from sqlmodel import Field, Session, SQLModel, create_engine, select

from task_models import DEFAULT_TITLE, Priority, Status, TaskBase, TaskCreate, TaskRecord, TaskUpdate

logger = logging.getLogger(__name__)

TASK_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def new_task_id() -> str:
    return uuid.uuid4().hex


class Task(TaskBase, table=True):
    """Task row. The id is assigned here and never changes."""

    id: str = Field(default_factory=new_task_id, primary_key=True)


# Global database engine
engine = None


def get_session():
    """Dependency to get database session"""
    with Session(engine) as session:
        yield session


app = FastAPI(title="Kanban Task API", description="Task collection behind the Kanban board")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_task_or_404(session: Session, task_id: str) -> Task:
    if not TASK_ID_PATTERN.match(task_id):
        raise HTTPException(status_code=400, detail="Invalid task ID")
    task = session.get(Task, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@app.get("/")
async def read_root():
    """Health check"""
    return {"message": "Kanban API is running"}


@app.get("/tasks", response_model=List[TaskRecord])
async def list_tasks(session: Session = Depends(get_session)):
    """List every task"""
    return session.exec(select(Task)).all()


@app.post("/tasks", response_model=TaskRecord, status_code=201)
async def create_task(draft: TaskCreate, session: Session = Depends(get_session)):
    """Create a task. The server assigns the id; empty fields take their defaults."""
    task = Task(
        title=(draft.title or "").strip() or DEFAULT_TITLE,
        status=draft.status or Status.TODO,
        priority=draft.priority or Priority.MEDIUM,
        points=draft.points or 0,
    )
    session.add(task)
    session.commit()
    session.refresh(task)
    logger.info("Created task %s", task.id)
    return task


@app.put("/tasks/{task_id}", response_model=TaskRecord)
async def update_task(task_id: str, changes: TaskUpdate, session: Session = Depends(get_session)):
    """Update a task with a full or partial payload"""
    task = get_task_or_404(session, task_id)

    for field, value in changes.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(task, field, value)

    session.add(task)
    session.commit()
    session.refresh(task)
    return task


@app.delete("/tasks/{task_id}")
async def delete_task(task_id: str, session: Session = Depends(get_session)):
    """Delete a task"""
    task = get_task_or_404(session, task_id)

    session.delete(task)
    session.commit()
    logger.info("Deleted task %s", task_id)
    return {"message": "Task deleted successfully"}


def setup_database(project_dir: Optional[str] = None):
    """Set up database connection"""
    global engine

    if project_dir:
        project_dir_path = pathlib.Path(project_dir).resolve()
        if not project_dir_path.is_dir():
            print(f"Error: Project directory does not exist: {project_dir_path}", file=sys.stderr)
            sys.exit(1)
        database_file = project_dir_path / "kanban.db"
    else:
        print("Warning: --project-dir not specified. Using current directory.", file=sys.stderr)
        database_file = pathlib.Path.cwd() / "kanban.db"

    database_url = f"sqlite:///{database_file.resolve()}"
    engine = create_engine(database_url, connect_args={"check_same_thread": False})

    # Create tables
    SQLModel.metadata.create_all(engine)

    print(f"Database: {database_file}")
    return database_url


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description="Kanban Task API")
    parser.add_argument(
        "--project-dir",
        type=str,
        help="Project directory containing kanban.db"
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
        default=3001,
        help="Port to bind to (default: 3001)"
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

    setup_database(args.project_dir)

    print(f"🚀 Starting Kanban Task API at http://{args.host}:{args.port}")
    print("   Press Ctrl+C to stop")

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=args.log_level
    )


if __name__ == "__main__":
    main()
