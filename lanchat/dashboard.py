from __future__ import annotations

import uvicorn
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .node import ChatNode


class MessageRequest(BaseModel):
    text: str


def create_app(node: ChatNode) -> FastAPI:
    """Build the HTTP status and submit API for ``node``."""
    app = FastAPI(title=f"lanchat {node.display_name}")

    @app.get("/api/status")
    def node_status() -> dict:
        return node.status()

    @app.get("/api/peers")
    def list_peers() -> list[dict]:
        return [peer.to_dict() for peer in node.peers()]

    @app.post("/api/messages")
    def send_message(req: MessageRequest) -> dict:
        if not req.text:
            raise HTTPException(status_code=400, detail="Message text is empty")
        if not node.running:
            raise HTTPException(status_code=503, detail="Node is not running")
        return {"sent": node.broadcast(req.text)}

    return app


def _stop_with_node(node: ChatNode, server: uvicorn.Server) -> None:
    while not node.tasks.wait(node.config.poll_interval):
        pass
    server.should_exit = True


def serve_dashboard(node: ChatNode, host: str, port: int) -> uvicorn.Server:
    """Run the dashboard in the node's task group until the node stops."""
    config = uvicorn.Config(create_app(node), host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    node.tasks.spawn(server.run, name="dashboard")
    node.tasks.spawn(_stop_with_node, node, server, name="dashboard-stop")
    return server


__all__ = ["MessageRequest", "create_app", "serve_dashboard"]
